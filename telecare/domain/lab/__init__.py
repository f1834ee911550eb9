# Lab test orders domain module
from telecare.domain.lab.models import LabTest, TestType

__all__ = [
    "LabTest",
    "TestType",
]
