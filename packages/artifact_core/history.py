"""Presentation helpers for version history lists."""

from dataclasses import dataclass

from artifact_core.models.version import ArtifactVersion, ChangeType

_LABELS = {
    ChangeType.ORIGINAL: ("Original", "sparkles"),
    ChangeType.EDITED: ("Edited", "pencil"),
    ChangeType.RESTORED: ("Restored", "rotate-ccw"),
    ChangeType.REVISED: ("Revised", "refresh-cw"),
}


@dataclass(frozen=True)
class HistoryEntry:
    """One row of a rendered history list."""

    version: ArtifactVersion
    label: str
    icon: str
    is_current: bool
    is_original: bool


def describe_history(versions: list[ArtifactVersion]) -> list[HistoryEntry]:
    """Label a newest-first version list for display.

    The first item is the current version and the last item is the original,
    whatever its recorded change type.
    """
    entries = []
    last = len(versions) - 1
    for index, version in enumerate(versions):
        is_original = index == last
        label, icon = _LABELS[ChangeType.ORIGINAL if is_original else version.change_type]
        entries.append(
            HistoryEntry(
                version=version,
                label=label,
                icon=icon,
                is_current=index == 0,
                is_original=is_original,
            )
        )
    return entries
