from setuptools import setup, find_packages

setup(
    name="rangerctl",
    version="0.1.0",
    description="Reconciles Apache Ranger policies, groups and service instances for the Doris demo stack.",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[
        "click",
        "requests",
        "urllib3",
        "pydantic>=2",
        "pydantic-settings",
        "psutil",
        "ruamel.yaml",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "rangerctl = rangerctl.main:cli",
        ],
    },
)
