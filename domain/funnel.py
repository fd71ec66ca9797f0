"""
Domain: Funnel steps, purchases token and transition table (pure).

A funnel is request-per-step and stateless between steps; everything a step
needs travels in the URL query string:
- customer_id / payment_method: one-click credentials saved at checkout
- purchases: comma-joined, ordered set of accepted offer ids ("main" first)
- payment_intent: the checkout intent, shown on the thank-you page

Contract excerpts implemented here:
- Steps run CHECKOUT -> UPSELL_1 -> ... -> UPSELL_n -> DOWNSELL -> THANK_YOU,
  with ABANDON from any offer step going straight to THANK_YOU.
- Offer steps without both credentials redirect to THANK_YOU (not an error).
- The purchases token is append-only and never holds duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Mapping, Optional, Union
from urllib.parse import urlencode

from .product import Product

DEFAULT_PURCHASE = "main"


class StepKind(str, Enum):
    CHECKOUT = "checkout"
    UPSELL = "upsell"
    DOWNSELL = "downsell"
    THANK_YOU = "thank-you"


class FunnelAction(str, Enum):
    PAY = "pay"  # checkout payment confirmed by the processor UI
    ACCEPT = "accept"
    DECLINE = "decline"
    ABANDON = "abandon"


class InvalidTransitionError(ValueError):
    """Raised when an action is not allowed from a step."""


class StepUnavailableError(LookupError):
    """Raised when a step does not exist in a product's funnel."""


@dataclass(frozen=True, slots=True)
class FunnelStep:
    kind: StepKind
    index: int = 0  # 1-based position, upsell steps only

    def __post_init__(self) -> None:
        if self.kind is StepKind.UPSELL and self.index < 1:
            raise ValueError("upsell steps are numbered from 1")
        if self.kind is not StepKind.UPSELL and self.index != 0:
            raise ValueError(f"{self.kind.value} step has no index")

    @property
    def path(self) -> str:
        if self.kind is StepKind.UPSELL:
            return f"upsell-{self.index}"
        return self.kind.value

    @property
    def is_offer(self) -> bool:
        return self.kind in (StepKind.UPSELL, StepKind.DOWNSELL)

    @classmethod
    def parse(cls, path: str) -> "FunnelStep":
        """
        Parse a URL path segment into a step.

        Example:
            FunnelStep.parse("upsell-2")   # FunnelStep(StepKind.UPSELL, 2)
        """
        if path.startswith("upsell-"):
            number = path[len("upsell-"):]
            if not number.isdigit() or int(number) < 1:
                raise ValueError(f"Unknown funnel step: {path!r}")
            return cls(StepKind.UPSELL, int(number))
        try:
            kind = StepKind(path)
        except ValueError:
            raise ValueError(f"Unknown funnel step: {path!r}") from None
        if kind is StepKind.UPSELL:
            raise ValueError("upsell step requires a number, e.g. 'upsell-1'")
        return cls(kind)

    @classmethod
    def upsell(cls, index: int) -> "FunnelStep":
        return cls(StepKind.UPSELL, index)


CHECKOUT = FunnelStep(StepKind.CHECKOUT)
DOWNSELL = FunnelStep(StepKind.DOWNSELL)
THANK_YOU = FunnelStep(StepKind.THANK_YOU)


@dataclass(frozen=True, slots=True)
class PurchasesToken:
    """
    Ordered set of accepted offer ids.

    Instances are immutable; with_offer() returns a new token and leaves
    history untouched.
    """

    items: tuple[str, ...] = (DEFAULT_PURCHASE,)

    def __post_init__(self) -> None:
        if len(set(self.items)) != len(self.items):
            raise ValueError("purchases token cannot contain duplicates")
        for item in self.items:
            if not item or "," in item:
                raise ValueError(f"Invalid offer id in purchases token: {item!r}")

    @classmethod
    def parse(cls, raw: Optional[str]) -> "PurchasesToken":
        """
        Deserialize a comma-joined token; a missing or blank value means ["main"].

        Blank entries are dropped and repeated ids keep their first position.
        """
        if raw is None or not raw.strip():
            return cls()
        items: list[str] = []
        for part in raw.split(","):
            part = part.strip()
            if part and part not in items:
                items.append(part)
        return cls(tuple(items)) if items else cls()

    def with_offer(self, offer_id: str) -> "PurchasesToken":
        """Token with offer_id appended; the same token if it is already present."""
        if offer_id in self.items:
            return self
        return PurchasesToken(self.items + (offer_id,))

    def serialize(self) -> str:
        return ",".join(self.items)

    def __contains__(self, offer_id: object) -> bool:
        return offer_id in self.items

    def __iter__(self) -> Iterator[str]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __str__(self) -> str:
        return self.serialize()


@dataclass(frozen=True, slots=True)
class FunnelParams:
    """Inbound query-string state of one funnel request."""

    customer_id: Optional[str] = None
    payment_method: Optional[str] = None
    purchases: PurchasesToken = field(default_factory=PurchasesToken)
    payment_intent: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.customer_id) and bool(self.payment_method)

    @classmethod
    def from_query(cls, query: Mapping[str, Optional[str]]) -> "FunnelParams":
        return cls(
            customer_id=query.get("customer_id") or None,
            payment_method=query.get("payment_method") or None,
            purchases=PurchasesToken.parse(query.get("purchases")),
            payment_intent=query.get("payment_intent") or None,
        )

    def with_purchases(self, purchases: PurchasesToken) -> "FunnelParams":
        return FunnelParams(
            customer_id=self.customer_id,
            payment_method=self.payment_method,
            purchases=purchases,
            payment_intent=self.payment_intent,
        )

    def query_for(self, step: FunnelStep) -> dict[str, str]:
        """
        Query parameters to carry into `step`.

        Credentials are forwarded to offer steps only; the thank-you page
        receives the purchases token and the checkout intent id.
        """
        query: dict[str, str] = {}
        if step.is_offer:
            if self.customer_id:
                query["customer_id"] = self.customer_id
            if self.payment_method:
                query["payment_method"] = self.payment_method
        query["purchases"] = self.purchases.serialize()
        if step.kind is StepKind.THANK_YOU and self.payment_intent:
            query["payment_intent"] = self.payment_intent
        return query


def step_url(product_slug: str, step: FunnelStep, params: FunnelParams) -> str:
    return f"/{product_slug}/{step.path}?{urlencode(params.query_for(step))}"


def action_url(product_slug: str, step: FunnelStep, action: FunnelAction, params: FunnelParams) -> str:
    """
    URL an offer page posts to for `action`.

    Carries the whole funnel state (credentials, purchases token and the
    checkout intent id) since the action endpoint reads it from the query.
    """
    query = params.query_for(step)
    if params.payment_intent:
        query["payment_intent"] = params.payment_intent
    return f"/{product_slug}/{step.path}/{action.value}?{urlencode(query)}"


@dataclass(frozen=True, slots=True)
class StepEntry:
    """The buyer may see this step."""

    step: FunnelStep
    offer_id: Optional[str]
    current_step: int
    total_steps: int
    params: FunnelParams


@dataclass(frozen=True, slots=True)
class Redirect:
    """The buyer must be sent elsewhere before anything renders."""

    step: FunnelStep
    url: str


StepDecision = Union[StepEntry, Redirect]


@dataclass(frozen=True, slots=True)
class FunnelPlan:
    """
    The steps and transition table of one product's funnel.

    Built from enabled offers only. total_steps is for progress display and
    plays no part in transitions.
    """

    product_slug: str
    upsell_ids: tuple[str, ...]
    downsell_id: Optional[str]
    transitions: Mapping[tuple[FunnelStep, FunnelAction], FunnelStep]

    @classmethod
    def for_product(cls, product: Product) -> "FunnelPlan":
        upsell_ids = tuple(u.id for u in product.enabled_upsells)
        downsell_id = product.downsell.id if product.downsell_enabled else None
        upsell_steps = [FunnelStep.upsell(i) for i in range(1, len(upsell_ids) + 1)]

        table: dict[tuple[FunnelStep, FunnelAction], FunnelStep] = {}
        table[(CHECKOUT, FunnelAction.PAY)] = upsell_steps[0] if upsell_steps else THANK_YOU

        for position, step in enumerate(upsell_steps):
            following = upsell_steps[position + 1] if position + 1 < len(upsell_steps) else None
            table[(step, FunnelAction.ACCEPT)] = following or THANK_YOU
            if following is not None:
                table[(step, FunnelAction.DECLINE)] = following
            else:
                table[(step, FunnelAction.DECLINE)] = DOWNSELL if downsell_id else THANK_YOU
            table[(step, FunnelAction.ABANDON)] = THANK_YOU

        if downsell_id:
            for action in (FunnelAction.ACCEPT, FunnelAction.DECLINE, FunnelAction.ABANDON):
                table[(DOWNSELL, action)] = THANK_YOU

        return cls(
            product_slug=product.slug,
            upsell_ids=upsell_ids,
            downsell_id=downsell_id,
            transitions=table,
        )

    @property
    def total_steps(self) -> int:
        return len(self.upsell_ids) + (1 if self.downsell_id else 0)

    def steps(self) -> list[FunnelStep]:
        result = [CHECKOUT]
        result.extend(FunnelStep.upsell(i) for i in range(1, len(self.upsell_ids) + 1))
        if self.downsell_id:
            result.append(DOWNSELL)
        result.append(THANK_YOU)
        return result

    def has_step(self, step: FunnelStep) -> bool:
        if step.kind is StepKind.UPSELL:
            return step.index <= len(self.upsell_ids)
        if step.kind is StepKind.DOWNSELL:
            return self.downsell_id is not None
        return True

    def offer_id(self, step: FunnelStep) -> Optional[str]:
        """Offer sold at an offer step; None for checkout and thank-you."""
        if not self.has_step(step):
            raise StepUnavailableError(f"{self.product_slug}: no {step.path} step")
        if step.kind is StepKind.UPSELL:
            return self.upsell_ids[step.index - 1]
        if step.kind is StepKind.DOWNSELL:
            return self.downsell_id
        return None

    def position(self, step: FunnelStep) -> int:
        """1-based progress position of an offer step."""
        if step.kind is StepKind.UPSELL:
            return step.index
        if step.kind is StepKind.DOWNSELL:
            return len(self.upsell_ids) + 1
        return 0

    def next_step(self, step: FunnelStep, action: FunnelAction) -> FunnelStep:
        try:
            return self.transitions[(step, action)]
        except KeyError:
            raise InvalidTransitionError(
                f"{self.product_slug}: cannot {action.value} at {step.path}"
            ) from None

    def enter(self, step: FunnelStep, params: FunnelParams) -> StepDecision:
        """
        Decide whether `step` renders or redirects.

        Raises:
            StepUnavailableError: the step is not part of this funnel
        """
        offer_id = self.offer_id(step)

        if step.is_offer and not params.has_credentials:
            return Redirect(step=THANK_YOU, url=step_url(self.product_slug, THANK_YOU, params))

        return StepEntry(
            step=step,
            offer_id=offer_id,
            current_step=self.position(step),
            total_steps=self.total_steps,
            params=params,
        )


__all__ = [
    "CHECKOUT",
    "DEFAULT_PURCHASE",
    "DOWNSELL",
    "FunnelAction",
    "FunnelParams",
    "FunnelPlan",
    "FunnelStep",
    "InvalidTransitionError",
    "PurchasesToken",
    "Redirect",
    "StepDecision",
    "StepEntry",
    "StepKind",
    "StepUnavailableError",
    "THANK_YOU",
    "action_url",
    "step_url",
]
