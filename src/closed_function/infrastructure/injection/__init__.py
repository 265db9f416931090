from .code_wrapper import forward_arguments, generate_python_shim

__all__ = ["forward_arguments", "generate_python_shim"]
