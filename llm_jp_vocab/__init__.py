"""
LLM JP Vocab Plugin

A plugin for memorising Japanese vocabulary on a fixed Ebbinghaus review schedule.
"""

from . import structured
from . import scheduler
from . import importer
from . import study
from . import db
from . import plugin

__version__ = "0.1.0"
__all__ = ["structured", "scheduler", "importer", "study", "db", "plugin"]
