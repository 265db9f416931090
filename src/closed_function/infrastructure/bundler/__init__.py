from .stickytape_bundler import StickytapeBundler

__all__ = ["StickytapeBundler"]
