from .quoter import Pricing, RateQuoter

__all__ = ["Pricing", "RateQuoter"]
