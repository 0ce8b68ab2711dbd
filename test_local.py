#!/usr/bin/env python3
"""
Test script for the harmonics engine - Simple Interactive Version
"""
import logging
import sys
from datetime import datetime, timedelta, timezone

print("=" * 70)
print("🌊 TIDE HARMONICS - Engine Test")
print("=" * 70)

print(f"\n✓ Python version: {sys.version.split()[0]}")

try:
    from tide_harmonics import HarmonicsConfig, HarmonicsEngine, PeakType
except ImportError as e:
    print(f"  ✗ Failed to import tide_harmonics: {e}")
    sys.exit(1)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

config = HarmonicsConfig.from_env()

print(f"\n📂 Checking harmonics databases:")
for label, path in (("binary", config.binary_path), ("json", config.json_path)):
    if path.is_file():
        print(f"  ✓ {label}: {path}")
    else:
        print(f"  ⚠ {label}: {path} NOT FOUND")

engine = HarmonicsEngine(config)
if not engine.harmonics_available():
    print("\n✗ No harmonics database found. Set HARMONICS_BINARY_FILE or HARMONICS_JSON_FILE.")
    sys.exit(1)

print(f"\n🚀 Loading stations...")
try:
    stations = engine.stations()
except Exception as e:
    print(f"  ✗ Failed to load: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
print(f"  ✓ {len(stations)} stations loaded")
for s in stations[:10]:
    print(f"    {s.id:<16} {s.kind.value:<8} {s.name}")

print("\n" + "=" * 70)
print("📍 ENTER STATION")
print("=" * 70)

while True:
    station_id = input("Station id: ").strip()
    station = engine.find_station(station_id)
    if station is not None:
        break
    print("❌ Unknown station. Try again.")

while True:
    try:
        days_input = input("Number of days to predict (1-30, default=2): ").strip()
        if days_input == '':
            days = 2
            break
        days = int(days_input)
        if 1 <= days <= 30:
            break
        print("❌ Must be between 1 and 30. Try again.")
    except ValueError:
        print("❌ Invalid number. Try again.")

start = datetime.now(timezone.utc).replace(second=0, microsecond=0)
print(f"\n🌊 Predicting {station.name} ({station.kind.value}, {station.units})")
print(f"   From: {start.isoformat()}")
print(f"   Duration: {days} days")
print("-" * 70)

points = engine.generate_predictions(station.id, start, start + timedelta(days=days))
events = engine.detect_peaks(points, station)

print(f"\n✓ {len(points)} samples, {len(events)} events:\n")
symbols = {
    PeakType.HIGH: "🔼",
    PeakType.LOW: "🔽",
    PeakType.SLACK: "➖",
    PeakType.MAX_FLOOD: "⏩",
    PeakType.MAX_EBB: "⏪",
}
for i, event in enumerate(events[:30], 1):
    direction = f" @ {event.direction:.0f}°" if event.direction is not None else ""
    print(f"{i:2d}. {symbols[event.type]} {event.type.value:<8} | {event.time.isoformat()} | "
          f"{event.value:+.2f} {event.units}{direction}")

if len(events) > 30:
    print(f"\n   ... and {len(events) - 30} more events")

print("\n" + "=" * 70)
print("✅ TEST COMPLETE")
print("=" * 70)
