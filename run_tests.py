#!/usr/bin/env python3
"""
Voice Agent Test Runner
Run from the project root directory
"""

import importlib.util
import sys
import subprocess
from pathlib import Path


def check_environment():
    """Check that we're in the right place with the right files"""
    required_dirs = ["host", "host/voice_agent", "tests"]
    required_files = [
        "host/chat_host.py",
        "pyproject.toml",
    ]

    print("🔍 Checking environment...")

    for dir_name in required_dirs:
        if not Path(dir_name).exists():
            print(f"❌ Missing directory: {dir_name}")
            return False
        print(f"  ✅ {dir_name}/ found")

    for file_path in required_files:
        if not Path(file_path).exists():
            print(f"❌ Missing file: {file_path}")
            return False
        print(f"  ✅ {file_path} found")

    print("✅ Environment check passed")
    return True


def main():
    """Run the voice agent tests with proper error handling"""

    print("🧪 VOICE AGENT TEST RUNNER")
    print("=" * 50)

    if not check_environment():
        print("\n❌ Environment check failed")
        print("   Make sure you're in the project root directory")
        sys.exit(1)

    print("\n🧪 Running test suite...")
    if importlib.util.find_spec("pytest") is not None:
        command = [sys.executable, "-m", "pytest", "tests", "-v"]
    else:
        # Fallback to unittest discovery if pytest not available
        command = [sys.executable, "-m", "unittest", "discover", "-s", "tests", "-v"]

    try:
        result = subprocess.run(command, timeout=300)
    except subprocess.TimeoutExpired:
        print("❌ Test suite timed out")
        sys.exit(1)

    print("\n" + "=" * 50)
    if result.returncode == 0:
        print("✅ Test suite completed successfully")
    else:
        print("⚠️  Test suite had some failures (check output above)")
    sys.exit(result.returncode)


if __name__ == "__main__":
    main()
