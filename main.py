"""Command line entry point for the relief dispatch router."""
import sys
import argparse
from loguru import logger

from configurations.config import Config
from routing.osrm_client import OSRMRouter
from services.dispatch_coordinator import DispatchCoordinator
from services.hazard_feed import HazardFeedClient
from utils.geo import fmt_distance, fmt_duration

def parse_coordinate(value: str):
    """Parse 'lat,lng' into a tuple."""
    try:
        lat, lng = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected 'lat,lng', got '{value}'")
    return (lat, lng)

def print_route(route) -> None:
    for number in (1, 2):
        leg = route.leg(number)
        label = "Agent -> Pickup" if number == 1 else "Pickup -> Dropoff"
        flags = []
        if leg.rerouted:
            flags.append("rerouted")
        if leg.degraded:
            flags.append("degraded")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(f"Leg {number} ({label}): {fmt_distance(leg.distance_m)}, "
              f"{fmt_duration(leg.duration_s)}, {len(leg.path)} points{suffix}")
    print(f"Total: {fmt_distance(route.total_distance_m)}, {fmt_duration(route.total_duration_s)}")
    if route.warning:
        print(f"Warning: {route.warning}")

def main():
    """Command line interface for the dispatch router."""
    parser = argparse.ArgumentParser(description="Relief dispatch: mission ranking and hazard-aware routing")
    parser.add_argument("--agent", type=parse_coordinate, help="Agent position as lat,lng")
    parser.add_argument("--pickup", type=parse_coordinate, help="Pickup location as lat,lng")
    parser.add_argument("--dropoff", type=parse_coordinate, help="Dropoff location as lat,lng")
    parser.add_argument("--vehicle", default="car", help="Vehicle class: car, bike or truck")
    parser.add_argument("--hazard-feed", default=Config.HAZARD_FEED_URL, help="Active hazards endpoint")
    parser.add_argument("--osrm-url", default=Config.OSRM_BASE_URL, help="OSRM server URL")
    parser.add_argument("--api", action="store_true", help="Start FastAPI server instead")
    parser.add_argument("--port", type=int, default=Config.API_PORT, help="Port for FastAPI server")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=Config.LOG_LEVEL)

    if args.api:
        # Start FastAPI server
        Config.HAZARD_FEED_URL = args.hazard_feed
        Config.OSRM_BASE_URL = args.osrm_url
        import uvicorn
        from api.dispatch_api import app
        logger.info(f"🚀 Starting FastAPI server on port {args.port}...")
        try:
            uvicorn.run(app, host=Config.API_HOST, port=args.port)
        except OSError as e:
            if "Address already in use" in str(e):
                logger.error(f"❌ Port {args.port} is already in use. Try a different port with --port <number>")
            else:
                logger.error(f"❌ Server startup failed: {e}")
            sys.exit(1)
        return

    if not all([args.agent, args.pickup, args.dropoff]):
        parser.error("--agent, --pickup and --dropoff are required when not using --api")

    hazard_feed = HazardFeedClient(args.hazard_feed) if args.hazard_feed else None
    coordinator = DispatchCoordinator(oracle=OSRMRouter(args.osrm_url), hazard_feed=hazard_feed)

    try:
        coordinator.refresh_hazards()
        route = coordinator.route_computer.compute_mission_route(
            args.agent, args.pickup, args.dropoff, args.vehicle, coordinator.hazard_model.snapshot())
        print_route(route)
    except Exception as e:
        logger.error(f"❌ Route computation failed: {e}")
        sys.exit(1)
    finally:
        coordinator.shutdown()

if __name__ == "__main__":
    main()
