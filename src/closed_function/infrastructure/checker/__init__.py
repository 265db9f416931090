from .pyflakes_checker import PyflakesChecker

__all__ = ["PyflakesChecker"]
