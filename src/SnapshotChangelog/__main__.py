# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.__main__",
#   "purpose": "Entry point for CLI invocation via python -m.",
#   "sections": []
# }
# === /NAVMAP ===

"""Entry point for CLI invocation via python -m."""

from SnapshotChangelog.cli import main

if __name__ == "__main__":
    main()
