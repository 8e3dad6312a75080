"""
ROTEM-guided coagulation decision support for liver transplantation.
"""
__version__ = "1.0.0"
