# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Built-in rule tables for known farming bots.

Each preset is plain configuration data: a target login, its rule table,
the prompt -> command responses, the prompt opened when a cooldown lapses,
and the purchases made after a rewarding claim.
"""

from __future__ import annotations

from typing import Any

_POSITIVE_RANK = r"\[(?:P\d+: )?\w+\]"
_POSITIVE_CLAIM_GOOD = (
    r"\[Cookies\] " + _POSITIVE_RANK + r" (?P<user>\w+) -> [^!]+!+ "
    r"\(±?(?P<amount>[+\-]?\d+)\) \w+ \| (?P<balance>\d+) total!"
)
_POSITIVE_CLAIM_BAD = (
    r"\[Cookies\] " + _POSITIVE_RANK + r" (?P<user>\w+) you have already claimed a cookie"
    r" and have (?P<balance>\d+) of them!"
)
_POSITIVE_CD_GOOD = (
    r"\[Cookies\] " + _POSITIVE_RANK + r" (?P<user>\w+), you have (?P<balance>\d+) cookies! \S+ "
    r"You can also claim your next cookie now by doing !cookie!"
)
_POSITIVE_CD_BAD = (
    r"\[Cookies\] " + _POSITIVE_RANK + r" (?P<user>\w+), you have (?P<balance>\d+) cookies! \S+ "
    r"(?:(?:(?P<hours>\d+) hrs?, )?(?P<minutes>\d+) mins?, and )?(?P<seconds>\d+) secs? "
    r"left until you can claim your next cookie!"
)
_POSITIVE_CDR_GOOD = r"\[Shop\] (?P<user>\w+), your cooldown has been reset!"
_POSITIVE_CDR_BAD = r"\[Shop\] (?P<user>\w+), you can purchase your next cooldown reset in "
_POSITIVE_PRESTIGE_GOOD = r"\[Cookies\] (?P<user>\w+) you reset your rank and are now \[(?:P\d+: )?\w+\]!"
_POSITIVE_PRESTIGE_BAD = r"\[Cookies\] (?P<user>\w+) you are not ranked high enough to Prestige yet!"

_EG_CLAIM_GOOD = r"@(?P<user>\w+) \| [^|]* \| (?P<amount>[+-]\d+) +egs \| Total egs: (?P<balance>\d+)"
_EG_CLAIM_BAD = (
    r"@(?P<user>\w+) nam1Sadeg no eg\. come back in (?P<minutes>\d+) minutes?,"
    r"(?: (?P<seconds>\d+) seconds?)? Total egs: (?P<balance>\d+)"
)

_LEAVES_CLAIM_GOOD = (
    r"\U0001F343 @(?P<user>\w+) > .* \((?P<amount>[+-]\d+)\) \| You've got (?P<balance>-?\d+) leaves now! "
    r"\| Get more leaves in 1 hour\.\.\."
)
_LEAVES_CLAIM_BAD = (
    r"\U0001F343 @(?P<user>\w+) > FeelsBadMan You need to wait (?P<minutes>\d+):(?P<seconds>\d+) minutes "
    r"until you can get more leaves \| You've got (?P<balance>-?\d+) leaves"
)


def _claim_replies(good: str, bad: str, cooldown_s: float) -> list[dict[str, Any]]:
    """Rules for bots that answer a claim with either a reward or a wait."""
    return [
        {"kind": "resolved", "pattern": good, "addressed": True},
        {"kind": "resolved", "pattern": bad, "addressed": True},
        {"kind": "cooldown", "pattern": good, "addressed": True, "cooldown_s": cooldown_s},
        {"kind": "cooldown", "pattern": bad, "addressed": True},
        {"kind": "balance", "pattern": good, "addressed": True},
        {"kind": "balance", "pattern": bad, "addressed": True},
        {"kind": "reward", "pattern": good, "addressed": True},
    ]


PRESETS: dict[str, dict[str, Any]] = {
    "generic": {
        "login": "farmbot",
        "rules": [
            {"kind": "prompt", "pattern": r"New prompt: .+? \(!(?P<prompt>\w+)\)"},
            {
                "kind": "cooldown",
                "pattern": r"[Yy]ou must wait (?:(?P<hours>\d+) hours?,? )?(?:(?P<minutes>\d+) minutes?,? )?"
                r"(?:and )?(?:(?P<seconds>\d+) seconds?)?",
            },
            {"kind": "balance", "pattern": r"[Yy]ou have (?P<balance>[\d,]+) cookies"},
            {"kind": "resolved", "pattern": r"(?i)\bprompt (?:resolved|expired|closed)\b"},
        ],
        "responses": {"roll": "!roll"},
    },
    "thepositivebot": {
        "login": "thepositivebot",
        "user_id": "425363834",
        "rules": [
            {"kind": "prompt", "pattern": _POSITIVE_CD_GOOD, "prompt": "cookie", "addressed": True},
            *_claim_replies(_POSITIVE_CLAIM_GOOD, _POSITIVE_CLAIM_BAD, cooldown_s=2 * 3600),
            {"kind": "cooldown", "pattern": _POSITIVE_CD_BAD, "addressed": True},
            {"kind": "balance", "pattern": _POSITIVE_CD_GOOD, "addressed": True},
            {"kind": "balance", "pattern": _POSITIVE_CD_BAD, "addressed": True},
            # A bought reset ends the cooldown and the next cookie can be claimed
            {"kind": "prompt", "pattern": _POSITIVE_CDR_GOOD, "prompt": "cookie", "addressed": True},
            {"kind": "cooldown", "pattern": _POSITIVE_CDR_GOOD, "addressed": True, "cooldown_s": 0},
            {"kind": "receipt", "pattern": _POSITIVE_CDR_GOOD, "addressed": True, "item": "cdr"},
            {"kind": "receipt", "pattern": _POSITIVE_CDR_BAD, "addressed": True, "item": "cdr", "accepted": False},
            {"kind": "receipt", "pattern": _POSITIVE_PRESTIGE_GOOD, "addressed": True, "item": "prestige"},
            {
                "kind": "receipt",
                "pattern": _POSITIVE_PRESTIGE_BAD,
                "addressed": True,
                "item": "prestige",
                "accepted": False,
            },
        ],
        "responses": {"cookie": "!cookie", "cdr": "!cdr", "prestige": "!prestige"},
        # A reset costs 7 cookies; prestige needs 5000
        "purchases": [
            {"prompt": "cdr", "min_amount": 8},
            {"prompt": "prestige", "min_balance": 5000},
        ],
        "claim_prompt": "cookie",
        # "already claimed" carries no duration
        "default_cooldown_s": 15 * 60,
    },
    "okayegbot": {
        "login": "okayegbot",
        "user_id": "75501168",
        "rules": _claim_replies(_EG_CLAIM_GOOD, _EG_CLAIM_BAD, cooldown_s=3600),
        "responses": {"eg": "=eg"},
        "claim_prompt": "eg",
    },
    "leavesbot": {
        "login": "leavesbot",
        "user_id": "731132488",
        "rules": _claim_replies(_LEAVES_CLAIM_GOOD, _LEAVES_CLAIM_BAD, cooldown_s=3600),
        "responses": {"leaves": "*leaves", "cdr": "*cdr", "multiplier": "*multiplier"},
        # Buy only when the claim covers the cost (8 and 24 leaves) half again
        "purchases": [
            {"prompt": "cdr", "min_amount": 12},
            {"prompt": "multiplier", "min_amount": 44},
        ],
        "claim_prompt": "leaves",
    },
}


def preset_names() -> list[str]:
    return sorted(PRESETS)


def get_preset(name: str) -> dict[str, Any]:
    """Return a copy of the named preset.

    Raises:
        KeyError: If no preset has that name
    """
    preset = PRESETS[name.lower()]
    return {
        **preset,
        "rules": [dict(rule) for rule in preset["rules"]],
        "responses": dict(preset["responses"]),
        "purchases": [dict(purchase) for purchase in preset.get("purchases", [])],
    }
