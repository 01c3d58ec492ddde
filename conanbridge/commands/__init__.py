from .install import install
from .find import find
from .profile import profile
from .provider_script import provider
from .clean import clean
from .config import config
from .log import log
from .version import version
