#!/usr/bin/env python3
"""
Command-line interface for the boutique storefront.

Usage:
    python cli.py [command] [options]

Commands:
    demo              Run demo scenarios against the in-process backend
    serve             Start the reference API server
    cleanup-uploads   Delete uploaded images no product references
    test              Run the test suite

Examples:
    python cli.py demo checkout
    python cli.py demo all
    python cli.py serve --port 5000
    python cli.py cleanup-uploads
"""

import argparse
import subprocess
import sys


def run_demo(scenario: str) -> None:
    """Run a demo scenario."""
    from shop.demo import run_admin_demo, run_checkout_demo, run_wishlist_demo

    scenarios = {
        "checkout": run_checkout_demo,
        "wishlist": run_wishlist_demo,
        "admin": run_admin_demo,
    }
    if scenario == "all":
        for run in scenarios.values():
            run()
    elif scenario in scenarios:
        scenarios[scenario]()
    else:
        print(f"Unknown scenario: {scenario}")
        sys.exit(1)


def run_cleanup() -> None:
    """Delete unused uploads after confirmation."""
    from maintenance.cleanup_uploads import main as cleanup_main

    sys.exit(cleanup_main())


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = [sys.executable, "-m", "pytest"] + args
    sys.exit(subprocess.run(cmd).returncode)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    import uvicorn

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    uvicorn.run("api.main:app", host=host, port=port, reload=reload)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Boutique storefront CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo checkout
  %(prog)s demo all
  %(prog)s serve --reload
  %(prog)s cleanup-uploads
  %(prog)s test -v
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run demo scenarios")
    demo_parser.add_argument(
        "scenario",
        choices=["checkout", "wishlist", "admin", "all"],
        help="Which scenario to run",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=5000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    # Cleanup command
    subparsers.add_parser("cleanup-uploads", help="Delete uploaded images no product references")

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    args = parser.parse_args()

    if args.command == "demo":
        run_demo(args.scenario)
    elif args.command == "serve":
        run_server(args.host, args.port, args.reload)
    elif args.command == "cleanup-uploads":
        run_cleanup()
    elif args.command == "test":
        run_tests(args.pytest_args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
