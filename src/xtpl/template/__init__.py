"""xtpl Template package: compiled template objects and their runtime.

"""

from xtpl.template.core import XTemplate
from xtpl.template.helpers import EMPTY, UNDEFINED
from xtpl.template.loop_frame import LoopFrame

__all__ = [
    "EMPTY",
    "UNDEFINED",
    "LoopFrame",
    "XTemplate",
]
