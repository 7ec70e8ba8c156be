"""Parameter derivation, geometry, point clouds and the chaos-game engine."""
