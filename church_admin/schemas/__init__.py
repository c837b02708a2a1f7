# Schemas package (re-export feature modules for stable imports)
from .common.common import *
from .ledger.ledger import *
from .scheduling.scheduling import *
