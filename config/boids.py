"""Configuration for the 2D Boids flocking simulation."""

WINDOW = {
    "width": 1280,
    "height": 720,
    "title": "Boids"
}

BOIDS = {
    "count": 100,
    "seed": None,                   # None = fresh random flock each run
    "size": 0.03,                   # Triangle scale in world units

    # Flocking behavior
    "cohesion_weight": 0.5,         # Move toward group center
    "separation_weight": 0.5,       # Avoid crowding
    "alignment_weight": 0.5,        # Match neighbor headings
    "edge_avoidance_weight": 0.5,   # Turn back near the boundary
    "avoidance_radius": 0.1,        # Minimum comfortable distance
    "detection_radius": 0.2,        # How far boids can see neighbors

    # Velocity bounds (only max_velocity is enforced)
    "min_velocity": 0.005,
    "max_velocity": 0.005,
    "max_acceleration": 0.005,
}

# Keyboard-adjustable parameters: (label, step, min, max)
CONTROLS = {
    "cohesion_weight": ("Cohesion", 0.1, 0.0, 1.0),
    "separation_weight": ("Separation", 0.1, 0.0, 1.0),
    "alignment_weight": ("Alignment", 0.1, 0.0, 1.0),
    "edge_avoidance_weight": ("Edge Avoidance", 0.1, 0.0, 1.0),
    "detection_radius": ("Detection Radius", 0.1, 0.0, 1.0),
    "avoidance_radius": ("Avoidance Radius", 0.1, 0.0, 1.0),
    "min_velocity": ("Minimum Velocity", 0.005, 0.0, 0.1),
    "max_velocity": ("Maximum Velocity", 0.005, 0.0, 0.1),
    "max_acceleration": ("Maximum Acceleration", 0.005, 0.0, 0.1),
}

BOUNDARY = {
    "color": (0.2, 0.2, 0.25),
    "edge_color": (0.12, 0.12, 0.16),
    "circle_segments": 96,
}

COLORS = {
    "background": (0.0, 0.0, 0.0, 1.0),
    "boid": (0.95, 0.95, 0.95),
    "text": (230, 230, 230),
    "text_selected": (255, 200, 80),
}

RECORDING = {
    "frames": 600,
    "batch_size": 50,           # Frames per background compression batch
    "compression_level": 19,
}
