# app/domain/errors.py
"""
Error taxonomy of the upsell engine.

RemoteError and ParseError are always recoverable: the orchestrator answers
them with the deterministic fallback ranking. SubjectNotFoundError is only
surfaced to callers for carts where no product resolves at all.
"""


class UpsellError(Exception):
    """Base class for upsell engine errors."""


class RemoteError(UpsellError):
    """The text generator failed (transport, HTTP status, timeout, empty content, not configured)."""


class ParseError(UpsellError):
    """The generator answered, but no usable JSON array could be extracted."""


class SubjectNotFoundError(UpsellError):
    """The viewed product (or every cart product) is missing from the catalog."""

    def __init__(self, shop: str, product_ids):
        self.shop = shop
        self.product_ids = list(product_ids)
        super().__init__(f"No catalog product found for shop={shop} ids={self.product_ids}")


class UnresolvedCandidateWarning(UserWarning):
    """The model referenced a product id that is not among the candidates."""
