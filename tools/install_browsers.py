#!/usr/bin/env python3
"""
Environment installer for the accessibility scanner.
Installs Playwright and the browser engines scans run in.
"""

import argparse
import subprocess
import sys

ENGINES = ("chromium", "firefox", "webkit")


def run_command(cmd, description):
    """Run a command and report status."""
    print(f"\n📦 {description}...")
    try:
        result = subprocess.run(cmd, check=True, capture_output=True, text=True)
        print(f"✅ {description} completed")
        if result.stdout:
            print(result.stdout)
        return True
    except subprocess.CalledProcessError as e:
        print(f"❌ {description} failed")
        if e.stderr:
            print(e.stderr)
        return False


def main(argv=None):
    parser = argparse.ArgumentParser(description="Install Playwright and browser engines for a11y-scan")
    parser.add_argument(
        "--browser",
        action="append",
        choices=ENGINES,
        help="Engine to install (repeatable, default: chromium)",
    )
    parser.add_argument("--skip-pip", action="store_true", help="Assume the playwright package is installed")
    args = parser.parse_args(argv)

    print("🚀 Setting up the accessibility scanner...")

    if sys.version_info < (3, 10):
        print("❌ Python 3.10+ required")
        sys.exit(1)

    if not args.skip_pip and not run_command(
        [sys.executable, "-m", "pip", "install", "playwright"],
        "Installing Playwright"
    ):
        sys.exit(1)

    for engine in args.browser or ["chromium"]:
        if not run_command(
            [sys.executable, "-m", "playwright", "install", engine],
            f"Installing {engine} browser"
        ):
            sys.exit(1)

    print("\n✅ Setup complete! You can now run:")
    print("   a11y-scan <url> --output ./a11y-report.json")


if __name__ == "__main__":
    main()
