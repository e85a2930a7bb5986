from .complexity import ComplexityReport, analyze

__all__ = ["ComplexityReport", "analyze"]
