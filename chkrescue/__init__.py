# chkrescue — Fragment (.CHK) File Recovery Engine
# Pure-Python signature carving of orphaned fragment files.
#
# Architecture (bottom → top):
#   signatures       — Signature catalogue (header + optional "contains" marker)
#   carver           — Multi-signature byte scan, one artifact per match
#   text_classifier  — Plain text / JSON fallback when nothing was carved
#   output           — Destination path resolution + collision policy
#   validation       — Pillow decode check for recovered images
#   sources          — .CHK discovery (flat or recursive)
#   manager          — Orchestrator (per-file outcomes, session report)
