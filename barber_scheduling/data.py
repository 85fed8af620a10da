# barber_scheduling/data.py

# Seeded into an empty service table at startup: name -> duration in minutes
SERVICES = {
    "shape_up": 15,
    "beard_trim": 15,
    "haircut": 30,
    "fade": 30,
    "scissors_cut": 30,
    "cut_and_beard": 45,
}

# First settings row; the timezone comes from AppConfig.business_timezone
DEFAULT_SETTINGS = {
    "business_name": "Barber Boss",
    "open_time": "08:00",
    "close_time": "18:00",
    "working_days": [1, 2, 3, 4, 5, 6],  # Monday to Saturday
    "slot_interval_min": 15,
    "max_advance_days": 30,
    "min_advance_hours": 2,
}
