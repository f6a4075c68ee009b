from setuptools import find_packages, setup

# Minimal setup.py to allow pip installation in environments (like p4a) that
# default to legacy builds and need explicit python_requires.

package_list = find_packages(
  include=[
    "entrypoints",
    "entrypoints.*",
    "monitor",
    "monitor.*",
    "reminders",
    "reminders.*",
    "liveness",
    "liveness.*",
    "os_interfaces",
    "os_interfaces.*",
  ]
)

setup(
  name="wakeup",
  version="0.1.0",
  description="Calendar reminder monitor that keeps alerting through OS power management",
  python_requires=">=3.11",
  packages=package_list,
  include_package_data=True,
  install_requires=[
    "pyyaml",
    "pydantic",
    "python-dotenv",
    "platformdirs",
  ],
  extras_require={
    "android": ["pyjnius", "cython==3.0.12", "buildozer"],
    "linux": ["desktop-notifier", "pystemd"],
    "dev": ["pytest", "pytest-asyncio", "pytest-cov"],
  },
  entry_points={
    "console_scripts": [
      "wakeup=entrypoints.wakeup_linux:main",
    ],
  },
)
