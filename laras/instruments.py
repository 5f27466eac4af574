"""InstrumentRegistry: symbol-to-pitch tables for every instrument label."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Mapping


# Pitch slots shared by every instrument. The position of a symbol in an
# instrument's alphabet selects the slot, and the slot selects the sample.
PITCH_SLOTS: Final[tuple[str, ...]] = ("D4", "E4", "G#4", "A4", "C#4", "D5", "E5", "G#5", "A5", "C#6")


@dataclass(frozen=True)
class InstrumentDefinition:
    """
    An atomic instrument backed by one sample voice.

    Attributes:
        id:           Label used in track lines.
        alphabet:     Playable symbols; ``alphabet[i]`` sounds pitch slot ``i``.
        samples:      Sample file names; ``samples[i]`` is loaded for slot ``i``.
        output_level: Voice output level in decibels.
    """

    id: str
    alphabet: tuple[str, ...]
    samples: tuple[str, ...]
    output_level: float


@dataclass(frozen=True)
class CompositeDefinition:
    """A label that drives several atomic instruments at once."""

    id: str
    member_ids: tuple[str, ...]


def _atomic(id: str, alphabet: str, samples: tuple[str, ...], level: float) -> InstrumentDefinition:
    return InstrumentDefinition(id=id, alphabet=tuple(alphabet), samples=samples, output_level=level)


_GK = ("gk_o.mp3", "gk_e.mp3", "gk_u.mp3", "gk_a.mp3", "gk_i.mp3",
       "gk_o-h.mp3", "gk_e-h.mp3", "gk_u-h.mp3", "gk_a-h.mp3", "gk_i-h.mp3")
_GP = ("gp_o.mp3", "gp_e.mp3", "gp_u.mp3", "gp_a.mp3", "gp_i.mp3",
       "gp_o-h.mp3", "gp_e-h.mp3", "gp_u-h.mp3", "gp_a-h.mp3", "gp_i-h.mp3")
_KKR = ("kkr_o.mp3", "kkr_e.mp3", "kkr_n.mp3", "kkr_u.mp3", "kkr_d.mp3",
        "kkr_t.mp3", "kkr_k.mp3", "kkr_p.mp3", "kkr_k-h.mp3", "kkr_pak.mp3")
_KKR_ALPHABET = "oenuDTkpḱṕ"

INSTRUMENTS: Final[tuple[InstrumentDefinition, ...]] = (
    # raw voices
    _atomic("r1", "EUAIOe", ("r_e.mp3", "r_u.mp3", "r_a.mp3", "r_i.mp3", "r_o.mp3", "r_e-h.mp3"), -24),
    _atomic("r2", "AIOeua", ("r_a.mp3", "r_i.mp3", "r_o.mp3", "r_e-h.mp3", "r_u-h.mp3", "r_a-h.mp3"), -24),
    _atomic("r3", "euaio", ("r_e-h.mp3", "r_u-h.mp3", "r_a-h.mp3", "r_i-h.mp3", "r_o-h.mp3"), -24),
    _atomic("r4", "Uaioeu", ("r_u-h.mp3", "r_a-h.mp3", "r_i-h.mp3", "r_o-h.mp3", "r_e-hh.mp3", "r_u-hh.mp3"), -24),
    _atomic("rs2", "aioeu", ("r_a.mp3", "r_i.mp3", "r_o.mp3", "r_e-h.mp3", "r_u-h.mp3"), -24),
    _atomic("rs4", "aioeu", ("r_a-h.mp3", "r_i-h.mp3", "r_o-h.mp3", "r_e-hh.mp3", "r_u-hh.mp3"), -24),
    _atomic("rp1", "euaio", ("r_e.mp3", "r_u.mp3", "r_a.mp3", "r_i.mp3", "r_o.mp3"), -24),
    _atomic("rp3", "euaio", ("r_e-h.mp3", "r_u-h.mp3", "r_a-h.mp3", "r_i-h.mp3", "r_o-h.mp3"), -24),
    # gong kettles
    _atomic("ks", "OEUAIoeuai", _GK, -28),
    _atomic("kp", "OEUAIoeuai", _GK, -28),
    _atomic("ps", "OEUAIoeuai", _GP, -28),
    _atomic("pp", "OEUAIoeuai", _GP, -28),
    _atomic("gr1", "EUAIoeuai", ("gr_e.mp3", "gr_u.mp3", "gr_a.mp3", "gr_i.mp3", "gr_o.mp3",
                                 "gr_e-h.mp3", "gr_u-h.mp3", "gr_a-h.mp3", "gr_i-h.mp3"), -26),
    _atomic("gr2", "EUAIoeuai", ("gr_e-h.mp3", "gr_u-h.mp3", "gr_a-h.mp3", "gr_i-h.mp3", "gr_o-h.mp3",
                                 "gr_e-hh.mp3", "gr_u-hh.mp3", "gr_a-hh.mp3", "gr_i-hh.mp3"), -26),
    # placeholders with no samples yet
    _atomic("u", "", (), -24),
    _atomic("t", "", (), -24),
    # metallophones
    _atomic("p", "UAioeua", ("pp_u.mp3", "pp_a.mp3", "pp_i.mp3", "pp_o.mp3", "pp_e.mp3", "pp_u-h.mp3", "pp_a-h.mp3"), -22),
    _atomic("c", "IOEUA", ("pc_i.mp3", "pc_o.mp3", "pc_e.mp3", "pc_u.mp3", "pc_a.mp3"), -22),
    _atomic("j", "IOEUA", ("pj_i.mp3", "pj_o.mp3", "pj_e.mp3", "pj_u.mp3", "pj_a.mp3"), -22),
    _atomic("g", "GLPt", ("g_g.mp3", "g_l.mp3", "g_p.mp3", "g_t.mp3"), -20),
    # percussion
    _atomic("km", "x", ("km.mp3",), -20),
    _atomic("kn", "n", ("kn.mp3",), -24),
    _atomic("cc", "xcC", ("c_x-l.mp3", "c_c.mp3", "c_c-o.mp3"), -28),
    _atomic("kkr", _KKR_ALPHABET, _KKR, -17),
    _atomic("krw", _KKR_ALPHABET, _KKR, -17),
    _atomic("krl", _KKR_ALPHABET, _KKR, -17),
    _atomic("tr", "opx", ("tr_o.mp3", "tr_p.mp3", "tr_x.mp3"), -18),
)

COMPOSITES: Final[tuple[CompositeDefinition, ...]] = (
    CompositeDefinition("rs", ("rs2", "rs4")),
    CompositeDefinition("rp", ("rp1", "rp3")),
    CompositeDefinition("kt", ("ks", "kp")),
    CompositeDefinition("pd", ("ps", "pp")),
    CompositeDefinition("gs", ("ks", "ps")),
    CompositeDefinition("gp", ("kp", "pp")),
    CompositeDefinition("gr", ("gr1", "gr2")),
    CompositeDefinition("ggs", ("ks", "kp", "ps", "pp")),
)


class InstrumentRegistry:
    """
    Read-only lookup of instrument labels.

    A label is either atomic (it owns an alphabet and a voice) or composite
    (it fans out to several atomic members, each resolving the symbol
    against its own alphabet).

        registry = InstrumentRegistry()
        registry.resolve("r1", "A")             # -> 2
        registry.resolve_targets("kt", "o")     # -> [("ks", 5), ("kp", 5)]

    Raises:
        ValueError: If an id is declared twice, or a composite names an id
                    that is not an atomic instrument.
    """

    def __init__(
        self,
        instruments: tuple[InstrumentDefinition, ...] = INSTRUMENTS,
        composites: tuple[CompositeDefinition, ...] = COMPOSITES,
    ) -> None:
        self._instruments: dict[str, InstrumentDefinition] = {}
        self._slots: dict[str, dict[str, int]] = {}
        for definition in instruments:
            if definition.id in self._instruments:
                raise ValueError(f"Instrument '{definition.id}' is declared twice.")
            if len(definition.alphabet) > len(PITCH_SLOTS):
                raise ValueError(
                    f"Instrument '{definition.id}' has {len(definition.alphabet)} symbols "
                    f"but only {len(PITCH_SLOTS)} pitch slots exist."
                )
            self._instruments[definition.id] = definition
            self._slots[definition.id] = {symbol: slot for slot, symbol in enumerate(definition.alphabet)}

        self._composites: dict[str, CompositeDefinition] = {}
        for composite in composites:
            if composite.id in self._instruments or composite.id in self._composites:
                raise ValueError(f"Instrument '{composite.id}' is declared twice.")
            unknown = [member for member in composite.member_ids if member not in self._instruments]
            if unknown:
                raise ValueError(
                    f"Composite '{composite.id}' refers to unknown instrument(s): {', '.join(unknown)}."
                )
            self._composites[composite.id] = composite

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def atomic_ids(self) -> tuple[str, ...]:
        return tuple(self._instruments)

    @property
    def composite_ids(self) -> tuple[str, ...]:
        return tuple(self._composites)

    @property
    def labels(self) -> tuple[str, ...]:
        """Every label a track line may use, atomic ids first."""
        return self.atomic_ids + self.composite_ids

    def __contains__(self, label: object) -> bool:
        return label in self._instruments or label in self._composites

    def is_composite(self, label: str) -> bool:
        return label in self._composites

    def definition(self, instrument_id: str) -> InstrumentDefinition:
        """Definition of an atomic instrument. Raises KeyError for other ids."""
        return self._instruments[instrument_id]

    def output_level(self, instrument_id: str) -> float:
        return self._instruments[instrument_id].output_level

    def mapping(self, instrument_id: str) -> dict[str, str]:
        """Symbol to pitch-slot name mapping of an atomic instrument."""
        return {symbol: PITCH_SLOTS[slot] for symbol, slot in self._slots[instrument_id].items()}

    def members(self, label: str) -> tuple[str, ...]:
        """Atomic instruments driven by ``label``; empty for unknown labels."""
        if label in self._composites:
            return self._composites[label].member_ids
        if label in self._instruments:
            return (label,)
        return ()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, label: str, symbol: str) -> int | None:
        """
        Pitch slot of ``symbol`` on the atomic instrument ``label``.

        Returns None when the label is unknown or composite, or when the
        symbol is not in the instrument's alphabet.
        """
        slots = self._slots.get(label)
        if slots is None:
            return None
        return slots.get(symbol)

    def resolve_targets(self, label: str, symbol: str) -> list[tuple[str, int]]:
        """
        Every ``(instrument_id, slot)`` that should sound for ``symbol`` on
        ``label``. Members of a composite resolve independently; members that
        do not know the symbol are left out.
        """
        targets: list[tuple[str, int]] = []
        for member in self.members(label):
            slot = self.resolve(member, symbol)
            if slot is not None:
                targets.append((member, slot))
        return targets

    def sample_table(self, instrument_id: str) -> Mapping[int, str]:
        """Pitch slot to sample file name for an atomic instrument."""
        return dict(enumerate(self._instruments[instrument_id].samples))
