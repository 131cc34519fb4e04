"""
ShellQuant: concentric shell analysis of nuclear signal localisation.

Main modules:
- geometry: Region boundaries and pixel membership
- shells: Region shrinking and shell decomposition
- result: Per-shell intensity store and proportions
- random_distribution: Fixed-seed random baseline
- analysis: Shell analysis over a cell collection
- dataset: Cells, nuclei, signals and collections
- core: Image loading and channel extraction
"""

__version__ = "0.1.0"

# Types and options
from .models import (
    RANDOM_SIGNAL_ID,
    RANDOM_SIGNAL_NAME,
    CountType,
    ShrinkType,
    Normalisation,
    Aggregation,
    ShellKey,
    ShellOptions,
    ShellQuantError,
    ShellAnalysisException,
    ImageLoadError,
)

# Image access
from .core import (
    ImageSource,
    load_channel,
    extract_single_channel,
)

# Geometry and shells
from .geometry import Region
from .shells import (
    RegionShrinker,
    ShellDecomposer,
    correct_nested_values,
    is_suitable_for_shells,
)

# Results
from .result import ShellResult
from .random_distribution import RandomDistribution

# Collections
from .dataset import (
    Signal,
    Nucleus,
    Cell,
    SignalGroup,
    CellCollection,
    VirtualCellCollection,
)

# Analysis
from .analysis import (
    ShellAnalysisOrchestrator,
    run_shell_analysis,
    copy_shell_results,
    filter_suitable_cells,
)

__all__ = [
    # Types
    "RANDOM_SIGNAL_ID",
    "RANDOM_SIGNAL_NAME",
    "CountType",
    "ShrinkType",
    "Normalisation",
    "Aggregation",
    "ShellKey",
    "ShellOptions",
    "ShellQuantError",
    "ShellAnalysisException",
    "ImageLoadError",
    # Images
    "ImageSource",
    "load_channel",
    "extract_single_channel",
    # Shells
    "Region",
    "RegionShrinker",
    "ShellDecomposer",
    "correct_nested_values",
    "is_suitable_for_shells",
    # Results
    "ShellResult",
    "RandomDistribution",
    # Collections
    "Signal",
    "Nucleus",
    "Cell",
    "SignalGroup",
    "CellCollection",
    "VirtualCellCollection",
    # Analysis
    "ShellAnalysisOrchestrator",
    "run_shell_analysis",
    "copy_shell_results",
    "filter_suitable_cells",
]
