"""Configuration for the salon booking service.

Business defaults live here - modify as needed without touching code.
Deployment settings are read from the environment (a local .env file is
loaded first).
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Weekday keys follow the booking widget: "0" = Sunday ... "6" = Saturday
DEFAULT_OPENING_HOURS = {
    "0": {"is_open": False, "start_time": "09:00", "end_time": "18:00"},
    "1": {"is_open": True, "start_time": "09:00", "end_time": "18:00"},
    "2": {"is_open": True, "start_time": "09:00", "end_time": "18:00"},
    "3": {"is_open": True, "start_time": "09:00", "end_time": "18:00"},
    "4": {"is_open": True, "start_time": "09:00", "end_time": "18:00"},
    "5": {"is_open": True, "start_time": "09:00", "end_time": "18:00"},
    "6": {"is_open": True, "start_time": "09:00", "end_time": "18:00"},
}
DEFAULT_SLOT_INTERVAL_MINUTES = 60

# Bounds accepted when an administrator saves the schedule
MIN_SLOT_INTERVAL_MINUTES = 5
MAX_SLOT_INTERVAL_MINUTES = 240

# Minimum delay between "now" and a bookable slot
BOOKING_LEAD_TIME_HOURS = float(os.getenv("BOOKING_LEAD_TIME_HOURS", "2"))

# Period boundaries (hour of day)
MORNING_END_HOUR = 12
AFTERNOON_END_HOUR = 18

# Confirmation messages
MESSAGING_COUNTRY_CODE = os.getenv("MESSAGING_COUNTRY_CODE", "55")
MESSAGING_BASE_URL = "https://web.whatsapp.com/send"
BUSINESS_NAME = os.getenv("BUSINESS_NAME", "Studio Agenda")

# Persistence backends: "memory" | "sql" (schedule also accepts "json")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///agenda.db")
RESERVATION_BACKEND = os.getenv("RESERVATION_BACKEND", "sql")
SCHEDULE_BACKEND = os.getenv("SCHEDULE_BACKEND", "sql")
CATALOG_BACKEND = os.getenv("CATALOG_BACKEND", "sql")
SCHEDULE_FILE = os.getenv("SCHEDULE_FILE", "data/schedule.json")

# Store reads are retried before surfacing a retriable error
STORE_READ_ATTEMPTS = int(os.getenv("STORE_READ_ATTEMPTS", "3"))
STORE_READ_BACKOFF_SECONDS = float(os.getenv("STORE_READ_BACKOFF_SECONDS", "0.2"))

# Admin sessions
ADMIN_SESSION_TTL_HOURS = int(os.getenv("ADMIN_SESSION_TTL_HOURS", "12"))
LOGIN_ATTEMPTS_PER_MINUTE = int(os.getenv("LOGIN_ATTEMPTS_PER_MINUTE", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Sample catalog imported by the admin "seed" action
SEED_SERVICES = [
    {"id": "corte-cabelo", "name": "Corte de Cabelo", "description": "Corte moderno e personalizado",
     "duration_minutes": 45, "price": 50.0},
    {"id": "manicure", "name": "Manicure", "description": "Unhas impecáveis e bem cuidadas",
     "duration_minutes": 60, "price": 40.0},
    {"id": "coloracao", "name": "Coloração", "description": "Tintura profissional de alta qualidade",
     "duration_minutes": 120, "price": 120.0},
    {"id": "maquiagem", "name": "Maquiagem", "description": "Make profissional para qualquer ocasião",
     "duration_minutes": 90, "price": 80.0},
]

SEED_PROFESSIONALS = [
    {"id": "ana-silva", "name": "Ana Silva", "role": "Especialista em Cabelos",
     "service_ids": ["corte-cabelo", "coloracao"]},
    {"id": "carlos-oliveira", "name": "Carlos Oliveira", "role": "Hair Stylist",
     "service_ids": ["corte-cabelo"]},
    {"id": "beatriz-santos", "name": "Beatriz Santos", "role": "Manicure & Makeup",
     "service_ids": ["manicure", "maquiagem"]},
]
