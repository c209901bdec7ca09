#!/usr/bin/env python3
# environment_check.py - Verify environment configuration for the Trip Planner API

import importlib
import os
import platform
import subprocess
import sys
from typing import Dict, List, Tuple

# ANSI colors for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
RESET = "\033[0m"
BOLD = "\033[1m"

# distribution name -> import name
REQUIRED_PACKAGES: Dict[str, str] = {
    "fastapi": "fastapi",
    "uvicorn": "uvicorn",
    "pydantic": "pydantic",
    "openai": "openai",
    "python-dotenv": "dotenv",
    "redis": "redis",
    "requests": "requests",
    "aiohttp": "aiohttp",
    "tenacity": "tenacity",
}
OPTIONAL_PACKAGES: Dict[str, str] = {
    "supabase": "supabase",
}

REQUIRED_VARS = ["OPENAI_API_KEY"]
# variable -> what is disabled without it
OPTIONAL_VARS: Dict[str, str] = {
    "REDIS_URL": "falls back to redis://localhost:6379",
    "STRIPE_SECRET_KEY": "trips unlock without payment",
    "RESEND_API_KEY": "no emails are sent",
    "GOOGLE_PLACE_API_KEY": "activities keep model-estimated coordinates",
    "CLIENT_URL": "links point to http://localhost:5173",
}


def print_colored(text: str, color: str, bold: bool = False) -> None:
    """Print colored text to the terminal."""
    if bold:
        print(f"{BOLD}{color}{text}{RESET}")
    else:
        print(f"{color}{text}{RESET}")


def check_python_version() -> bool:
    """Check if Python version is 3.11+"""
    version_ok = sys.version_info >= (3, 11)
    if version_ok:
        print_colored(f"✓ Python version: {platform.python_version()}", GREEN)
    else:
        print_colored(f"✗ Python version: {platform.python_version()} (required: 3.11+)", RED)
    return version_ok


def _missing_packages(packages: Dict[str, str], color_missing: str) -> List[str]:
    missing = []
    for distribution, module in packages.items():
        try:
            importlib.import_module(module)
            print_colored(f"  ✓ {distribution}", GREEN)
        except ImportError:
            print_colored(f"  ✗ {distribution}", color_missing)
            missing.append(distribution)
    return missing


def check_package_installation() -> Tuple[bool, List[str]]:
    """Check if required packages are installed; optional ones are only reported."""
    print("Checking required packages:")
    missing_packages = _missing_packages(REQUIRED_PACKAGES, RED)
    print("Checking optional packages:")
    _missing_packages(OPTIONAL_PACKAGES, YELLOW)
    return len(missing_packages) == 0, missing_packages


def _env_file_defines(var: str) -> bool:
    env_file_path = os.path.join(os.path.dirname(__file__), ".env")
    if not os.path.exists(env_file_path):
        return False
    with open(env_file_path, "r") as f:
        return any(line.strip().startswith(f"{var}=") for line in f)


def check_environment_variables() -> Tuple[bool, List[str]]:
    """Check if required environment variables are set."""
    missing_vars = []

    print("Checking environment variables:")
    for var in REQUIRED_VARS:
        if os.environ.get(var):
            print_colored(f"  ✓ {var}", GREEN)
        elif _env_file_defines(var):
            print_colored(f"  ✓ {var} (in .env file)", YELLOW)
        else:
            print_colored(f"  ✗ {var}", RED)
            missing_vars.append(var)

    for var, consequence in OPTIONAL_VARS.items():
        if os.environ.get(var) or _env_file_defines(var):
            print_colored(f"  ✓ {var}", GREEN)
        else:
            print_colored(f"  - {var} not set: {consequence}", YELLOW)

    return len(missing_vars) == 0, missing_vars


def check_redis() -> bool:
    """Ping the trip store."""
    if os.environ.get("TRIP_STORE_BACKEND", "redis") != "redis":
        return True
    try:
        import redis

        redis.from_url(os.environ.get("REDIS_URL", "redis://localhost:6379")).ping()
        print_colored("  ✓ Redis reachable", GREEN)
        return True
    except Exception as e:
        print_colored(f"  ✗ Redis not reachable: {e}", RED)
        return False


def install_missing_packages(packages: List[str]) -> bool:
    """Install missing packages."""
    if not packages:
        return True

    print_colored("\nInstalling missing packages...", YELLOW)
    try:
        subprocess.check_call([sys.executable, "-m", "pip", "install"] + packages)
        return True
    except subprocess.CalledProcessError:
        print_colored("Failed to install packages. Please install them manually:", RED)
        for package in packages:
            print(f"  pip install {package}")
        return False


def main() -> None:
    """Main function."""
    print_colored("Trip Planner Environment Check", GREEN, bold=True)
    print("=" * 50)

    python_ok = check_python_version()

    print()
    packages_ok, missing_packages = check_package_installation()

    print()
    env_vars_ok, missing_vars = check_environment_variables()

    print()
    redis_ok = check_redis() if packages_ok else False

    # Summary
    print("\n" + "=" * 50)
    if python_ok and packages_ok and env_vars_ok and redis_ok:
        print_colored("✓ All checks passed! Your environment is ready.", GREEN, bold=True)
    else:
        print_colored("✗ Some checks failed. Please fix the issues below:", RED, bold=True)

        if not python_ok:
            print_colored("- Update Python to version 3.11 or higher", RED)

        if not packages_ok:
            print_colored(f"- Install missing packages: {', '.join(missing_packages)}", RED)
            choice = input("\nDo you want to install missing packages now? (y/n): ")
            if choice.lower() == "y":
                success = install_missing_packages(missing_packages)
                if success:
                    print_colored("✓ Packages installed successfully!", GREEN)

        if not env_vars_ok:
            print_colored("- Set required environment variables:", RED)
            for var in missing_vars:
                print(f"  export {var}=your_value")
            print("\nTip: You can add these to your .env file")

        if packages_ok and not redis_ok:
            print_colored("- Start Redis or point REDIS_URL at a running instance", RED)


if __name__ == "__main__":
    main()
