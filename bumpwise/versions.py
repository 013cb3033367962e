"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0"),
and derives new versions from relative keywords such as "minor" or
"preminor".
"""

from __future__ import annotations

import semver

from .errors import InvalidSpecifierError

RELATIVE_KEYWORDS = (
    "major",
    "premajor",
    "minor",
    "preminor",
    "patch",
    "prepatch",
    "prerelease",
)

DEFAULT_PREID = "rc"


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3-rc.1" → "1.2.3-rc.1"
    """
    return semver.Version.parse(version_str, optional_minor_and_patch=True)


def is_valid_version(version_str: str) -> bool:
    """Return True for a complete semver version string like "1.2.3"."""
    return semver.Version.is_valid(version_str)


def is_relative_keyword(specifier: str) -> bool:
    return specifier in RELATIVE_KEYWORDS


def is_valid_specifier(specifier: str) -> bool:
    """A specifier is an exact semver version or a relative keyword."""
    return is_valid_version(specifier) or is_relative_keyword(specifier)


def is_prerelease(version_str: str) -> bool:
    """Return True if the version carries a prerelease component.

    Unparseable strings are not prereleases.
    """
    try:
        return parse_version(version_str).prerelease is not None
    except ValueError:
        return False


def derive_new_version(
    current: str, specifier: str, preid: str | None = None
) -> str:
    """Compute the next version from a current version and a specifier.

    Exact versions are returned unchanged. Relative keywords follow semver
    rules, including graduation of a prerelease (e.g. "patch" on
    "1.0.1-rc.2" gives "1.0.1").

    Examples:
        ("1.2.3", "minor") → "1.3.0"
        ("1.2.3", "premajor", "beta") → "2.0.0-beta.1"
        ("1.2.3", "prerelease") → "1.2.4-rc.1"
        ("1.2.3", "4.0.0") → "4.0.0"

    Raises:
        InvalidSpecifierError: If specifier is neither form.
    """
    if is_valid_version(specifier):
        return specifier
    if not is_relative_keyword(specifier):
        raise InvalidSpecifierError(
            f'The given version specifier "{specifier}" is not valid. Provide an '
            'exact version or a semver keyword such as "major", "minor", "patch".'
        )

    version = parse_version(current)
    token = preid or DEFAULT_PREID
    if specifier.startswith("pre") and specifier != "prerelease":
        # premajor/preminor/prepatch always start a fresh prerelease line
        bumped = getattr(version, f"bump_{specifier[3:]}")()
        return str(bumped.bump_prerelease(token))
    return str(version.next_version(specifier, prerelease_token=token))
