from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

log = logging.getLogger(__name__)

# configuration keys of the channel-array dimensions
SETTINGS_KEYS = {
    "n_sfps": "NumberOfFebexSfps",
    "n_boards": "NumberOfFebexBoards",
    "n_channels": "NumberOfFebexChannels",
}


@dataclass(frozen=True)
class FebexSettings:
    """Dimensions of the FEBEX readout: SFP links, boards per link and
    channels per board.
    """

    n_sfps: int = 4
    n_boards: int = 16
    n_channels: int = 16

    @classmethod
    def from_dict(cls, config: Mapping) -> FebexSettings:
        """Read the dimensions from a flat configuration mapping, falling back
        to the defaults for missing keys.
        """
        kwargs = {}
        for attr, key in SETTINGS_KEYS.items():
            if key in config:
                kwargs[attr] = int(config[key])
        settings = cls(**kwargs)
        log.debug(f"FEBEX dimensions: {settings.shape}")
        return settings

    @property
    def shape(self) -> tuple[int, int, int]:
        return (self.n_sfps, self.n_boards, self.n_channels)

    def is_valid(self, sfp: int, board: int, ch: int) -> bool:
        """Check that the address lies within the configured dimensions."""
        return (
            0 <= sfp < self.n_sfps
            and 0 <= board < self.n_boards
            and 0 <= ch < self.n_channels
        )

    def as_dict(self) -> dict:
        return {key: getattr(self, attr) for attr, key in SETTINGS_KEYS.items()}
