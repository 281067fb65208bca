"""
Form module - Text fields, focus tracking and procedure lists.
"""

from .fields import ActiveFieldInjector, FormDocument, TextField
from .procedures import ProcedureLists, validate_procedure

__all__ = ["ActiveFieldInjector", "FormDocument", "ProcedureLists", "TextField", "validate_procedure"]
