# ct_platform/__init__.py
# CineTrack - platform layer: config, local state and item model helpers.
