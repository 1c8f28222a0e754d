# src/pubrules/profiles.py
import logging
from typing import Dict, Iterable, Optional

from pubrules.model import Profile, RunConfig

logger = logging.getLogger(__name__)

# Rules every published document is checked against
BASE_RULES = (
    "headers/div-head",
    "headers/title",
    "headers/hr",
    "headers/logo",
    "headers/h1-title",
    "headers/copyright",
    "headers/dl",
    "style/sheet",
    "style/back-to-top",
    "style/body-toc-sidebar",
    "structure/h2",
    "structure/section-ids",
    "structure/canonical",
    "links/internal",
    "links/reliability",
    "links/linkchecker",
    "sotd/supersedable",
    "sotd/stability",
    "heuristic/date-format",
)

REC_TRACK_RULES = BASE_RULES + ("sotd/pp",)


def _profile(name: str, rules: Iterable[str], **config) -> Profile:
    return Profile(name=name, rules=tuple(rules), config=RunConfig.model_validate(config))


PROFILES: Dict[str, Profile] = {
    p.name: p for p in (
        _profile(
            "FPWD", REC_TRACK_RULES,
            status="FPWD", longStatus="Working Draft", styleSheet="W3C-WD",
            recTrackStatus=True, patentPolicy="pp2020", previousVersion=False, stabilityWarning=True,
        ),
        _profile(
            "WD", REC_TRACK_RULES,
            status="WD", longStatus="Working Draft", styleSheet="W3C-WD",
            recTrackStatus=True, patentPolicy="pp2020", previousVersion=True, stabilityWarning=True,
        ),
        _profile(
            "CR", REC_TRACK_RULES,
            status="CR", longStatus="Candidate Recommendation", crType="Snapshot", styleSheet="W3C-CR",
            recTrackStatus=True, patentPolicy="pp2020", previousVersion=True, stabilityWarning=True,
        ),
        _profile(
            "CRD", REC_TRACK_RULES,
            status="CRD", longStatus="Candidate Recommendation", crType="Draft", styleSheet="W3C-CRD",
            recTrackStatus=True, patentPolicy="pp2020", previousVersion=True, stabilityWarning=True,
        ),
        _profile(
            "PR", REC_TRACK_RULES,
            status="PR", longStatus="Proposed Recommendation", styleSheet="W3C-PR",
            recTrackStatus=True, patentPolicy="pp2020", previousVersion=True, stabilityWarning=True,
        ),
        _profile(
            "REC", REC_TRACK_RULES + ("headers/errata",),
            status="REC", longStatus="Recommendation", styleSheet="W3C-REC",
            recTrackStatus=True, patentPolicy="pp2020", previousVersion=True,
        ),
        _profile(
            "NOTE", BASE_RULES,
            status="NOTE", longStatus="Group Note", styleSheet="W3C-NOTE",
            noRecTrack=True, previousVersion=False, stabilityWarning=True,
        ),
    )
}


def get_profile(name: str) -> Profile:
    try:
        return PROFILES[name.upper()]
    except KeyError:
        raise KeyError(f"Unknown profile '{name}', expected one of {', '.join(PROFILES)}") from None


def build_profile(
        name: Optional[str] = None,
        rules: Optional[Iterable[str]] = None,
        overrides: Optional[Dict] = None,
) -> Profile:
    """
    Profile for one run: a named profile, an ad-hoc rule list, or a named
    profile restricted to the given rules. Overrides are applied on top of
    the profile's configuration.
    """
    if name:
        base = get_profile(name)
    else:
        base = Profile(name="custom", rules=())

    selected = tuple(rules) if rules else base.rules
    if not selected:
        raise ValueError("A profile name or at least one rule is required")

    label = base.name if not rules else f"{base.name}:{','.join(selected)}"
    logger.debug("Using profile %s with %d rule(s)", label, len(selected))
    return Profile(name=label, rules=selected, config=base.config.merged(overrides))
