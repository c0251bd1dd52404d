from .bus import *
from .driver import *
from .enums import *
from .errors import *
from .i2ctarget import *
from .mmaptarget import *
from .registers import *
from .target import *
