# Version format: MAJOR.MINOR[.devN]
__version__ = "0.1.0"
