"""Plan configuration: algorithm choice, normalization and buffer contracts."""

from __future__ import annotations

import enum
import math
import os
from dataclasses import dataclass, field
from typing import Literal

from .errors import InvalidParameterError

DEFAULT_THRESHOLD = float(os.environ.get("TORCHNFSFT_THRESHOLD", "1000"))
DEFAULT_NFFT_EPSILON = float(os.environ.get("TORCHNFSFT_NFFT_EPSILON", "1e-12"))

Operation = Literal["forward", "adjoint"]


class Normalization(enum.Enum):
    UNNORMALIZED = "unnormalized"
    L2 = "l2"


class FourierAlgorithm(enum.Enum):
    """Algorithm used for the azimuthal (2-D nonequispaced Fourier) stage."""

    FAST = "nfft"
    DIRECT = "ndft"


class PolynomialAlgorithm(enum.Enum):
    """Algorithm used for the per-order Legendre stage."""

    FAST = "fpt"
    DIRECT = "dpt"


class Mutation(enum.Enum):
    DEFAULT = "default"
    PRESERVE = "preserve"
    DESTROY = "destroy"


class Flags(enum.IntFlag):
    """Bit flags accepted by :meth:`PlanConfig.from_flags`."""

    NONE = 0
    NORMALIZED = 1 << 0
    USE_NDFT = 1 << 1
    USE_DPT = 1 << 2
    MALLOC_X = 1 << 3
    MALLOC_F_HAT = 1 << 4
    MALLOC_F = 1 << 5
    PRESERVE_X = 1 << 6
    PRESERVE_F_HAT = 1 << 7
    PRESERVE_F = 1 << 8
    DESTROY_X = 1 << 9
    DESTROY_F_HAT = 1 << 10
    DESTROY_F = 1 << 11
    NO_DIRECT_ALGORITHM = 1 << 12
    NO_FAST_ALGORITHM = 1 << 13
    ZERO_F_HAT = 1 << 14


# Buffers each operation reads; the other buffer of the pair is its output.
_INPUTS: dict[str, tuple[str, ...]] = {
    "forward": ("nodes", "coefficients"),
    "adjoint": ("nodes", "samples"),
}

# Contract when no preserve/destroy choice is made.
_DEFAULT_MAY_DESTROY: dict[tuple[str, str], bool] = {
    ("forward", "coefficients"): True,
    ("forward", "nodes"): False,
    ("adjoint", "samples"): False,
    ("adjoint", "nodes"): False,
}


@dataclass(frozen=True)
class BufferPolicy:
    """Ownership and mutation contract for one plan buffer.

    ``owned=True`` means the plan allocates the buffer and releases it on
    finalize; otherwise the caller supplies it and keeps ownership.
    """

    owned: bool = True
    forward: Mutation = Mutation.DEFAULT
    adjoint: Mutation = Mutation.DEFAULT

    def __post_init__(self) -> None:
        for name in ("forward", "adjoint"):
            if not isinstance(getattr(self, name), Mutation):
                raise InvalidParameterError(f"BufferPolicy.{name} must be a Mutation")

    def mutation(self, operation: Operation) -> Mutation:
        if operation not in _INPUTS:
            raise InvalidParameterError(f"unknown operation {operation!r}")
        return getattr(self, operation)


@dataclass(frozen=True)
class PlanConfig:
    """Validated configuration of a :class:`~torchnfsft.plan.Plan`."""

    normalization: Normalization = Normalization.UNNORMALIZED
    fourier: FourierAlgorithm = FourierAlgorithm.FAST
    polynomial: PolynomialAlgorithm = PolynomialAlgorithm.FAST
    direct_enabled: bool = True
    fast_enabled: bool = True
    nodes: BufferPolicy = field(default_factory=BufferPolicy)
    coefficients: BufferPolicy = field(default_factory=BufferPolicy)
    samples: BufferPolicy = field(default_factory=BufferPolicy)
    zero_unused: bool = False
    threshold: float | None = None
    nfft_epsilon: float = DEFAULT_NFFT_EPSILON

    def __post_init__(self) -> None:
        checks = (
            ("normalization", Normalization),
            ("fourier", FourierAlgorithm),
            ("polynomial", PolynomialAlgorithm),
            ("nodes", BufferPolicy),
            ("coefficients", BufferPolicy),
            ("samples", BufferPolicy),
        )
        for name, kind in checks:
            if not isinstance(getattr(self, name), kind):
                raise InvalidParameterError(f"{name} must be a {kind.__name__}")
        if not self.direct_enabled and not self.fast_enabled:
            raise InvalidParameterError("at least one of direct and fast algorithms must be enabled")
        if self.threshold is not None and not (math.isfinite(self.threshold) and self.threshold > 0.0):
            raise InvalidParameterError("threshold must be a positive finite number")
        if not (self.nfft_epsilon > 0.0 and self.nfft_epsilon < 1.0):
            raise InvalidParameterError("nfft_epsilon must lie in (0, 1)")

    @property
    def normalized(self) -> bool:
        return self.normalization is Normalization.L2

    def policy(self, buffer: str) -> BufferPolicy:
        if buffer not in ("nodes", "coefficients", "samples"):
            raise InvalidParameterError(f"unknown buffer {buffer!r}")
        return getattr(self, buffer)

    def may_destroy(self, operation: Operation, buffer: str) -> bool:
        """Whether ``operation`` is allowed to overwrite its input ``buffer``."""
        if buffer not in _INPUTS.get(operation, ()):
            raise InvalidParameterError(f"{buffer} is not an input of the {operation} transform")
        mode = self.policy(buffer).mutation(operation)
        if mode is Mutation.DEFAULT:
            return _DEFAULT_MAY_DESTROY[(operation, buffer)]
        return mode is Mutation.DESTROY

    @classmethod
    def from_flags(
        cls,
        flags: Flags | int,
        *,
        threshold: float | None = None,
        nfft_epsilon: float = DEFAULT_NFFT_EPSILON,
    ) -> "PlanConfig":
        """
        Build a configuration from a bit set.

        ``MALLOC_*`` marks plan-owned buffers (absent: caller-owned), and each
        ``PRESERVE_*``/``DESTROY_*`` flag applies to both operations.
        """
        bits = int(flags)
        known = 0
        for member in Flags:
            known |= int(member)
        if bits < 0 or bits & ~known:
            raise InvalidParameterError(f"unknown flag bits in {bits:#x}")
        flags = Flags(bits)

        def _policy(malloc: Flags, preserve: Flags, destroy: Flags) -> BufferPolicy:
            if flags & preserve and flags & destroy:
                raise InvalidParameterError(f"{preserve.name} and {destroy.name} are mutually exclusive")
            if flags & preserve:
                mode = Mutation.PRESERVE
            elif flags & destroy:
                mode = Mutation.DESTROY
            else:
                mode = Mutation.DEFAULT
            return BufferPolicy(owned=bool(flags & malloc), forward=mode, adjoint=mode)

        return cls(
            normalization=Normalization.L2 if flags & Flags.NORMALIZED else Normalization.UNNORMALIZED,
            fourier=FourierAlgorithm.DIRECT if flags & Flags.USE_NDFT else FourierAlgorithm.FAST,
            polynomial=PolynomialAlgorithm.DIRECT if flags & Flags.USE_DPT else PolynomialAlgorithm.FAST,
            direct_enabled=not flags & Flags.NO_DIRECT_ALGORITHM,
            fast_enabled=not flags & Flags.NO_FAST_ALGORITHM,
            nodes=_policy(Flags.MALLOC_X, Flags.PRESERVE_X, Flags.DESTROY_X),
            coefficients=_policy(Flags.MALLOC_F_HAT, Flags.PRESERVE_F_HAT, Flags.DESTROY_F_HAT),
            samples=_policy(Flags.MALLOC_F, Flags.PRESERVE_F, Flags.DESTROY_F),
            zero_unused=bool(flags & Flags.ZERO_F_HAT),
            threshold=threshold,
            nfft_epsilon=nfft_epsilon,
        )
