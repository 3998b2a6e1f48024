"""Inspect or change the subscription grants stored on a Firebase user.

Billing normally writes the ``features`` custom claim; this tool covers support
and local testing. Changes take effect when the user's ID token is refreshed.

  python scripts/grant_features.py <firebase_uid> --show
  python scripts/grant_features.py <firebase_uid> --add unlimited_questions
  python scripts/grant_features.py <firebase_uid> --remove 1_interview
  python scripts/grant_features.py <firebase_uid> --set 5_questions 1_interview
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure repo root is on sys.path so local imports resolve before site-packages.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.core.firebase import get_feature_claims, set_feature_claims
from app.services.entitlements import Grant, normalize_grant_name


def _parse_grants(names: list[str]) -> set[str]:
  grants: set[str] = set()
  for name in names:
    grant = normalize_grant_name(name)
    if grant is None:
      known = ", ".join(member.value for member in Grant)
      raise SystemExit(f"Unknown grant {name!r}; expected one of: {known}")
    grants.add(grant.value)
  return grants


def _current_grants(firebase_uid: str) -> set[str]:
  # Unknown names already on the claim are dropped on the next write.
  return {grant.value for grant in (normalize_grant_name(name) for name in get_feature_claims(firebase_uid)) if grant is not None}


def main(argv: list[str] | None = None) -> int:
  parser = argparse.ArgumentParser(description="Manage subscription grants on a Firebase user.")
  parser.add_argument("firebase_uid")
  action = parser.add_mutually_exclusive_group(required=True)
  action.add_argument("--show", action="store_true", help="Print the user's current grants.")
  action.add_argument("--add", nargs="+", metavar="GRANT", help="Add grants to the user.")
  action.add_argument("--remove", nargs="+", metavar="GRANT", help="Remove grants from the user.")
  action.add_argument("--set", nargs="*", metavar="GRANT", help="Replace the user's grants (no names clears them).")
  args = parser.parse_args(argv)

  current = _current_grants(args.firebase_uid)
  if args.show:
    print(" ".join(sorted(current)) or "<none>")
    return 0

  if args.add:
    updated = current | _parse_grants(args.add)
  elif args.remove:
    updated = current - _parse_grants(args.remove)
  else:
    updated = _parse_grants(args.set or [])

  set_feature_claims(args.firebase_uid, sorted(updated))
  print(f"{args.firebase_uid}: {' '.join(sorted(updated)) or '<none>'}")
  return 0


if __name__ == "__main__":
  raise SystemExit(main())
