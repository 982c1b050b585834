# ============================================
# forestfit - setup.py
# Package setup
# ============================================

from pathlib import Path
from setuptools import setup, find_packages

VERSION = "1.0.0"

# Read README for long description
def get_long_description():
    """Get long description from README.md"""
    readme_path = Path(__file__).parent / "README.md"
    if readme_path.exists():
        with open(readme_path, "r", encoding="utf-8") as f:
            return f.read()
    return "Bagging and boosting ensembles of regression trees"

# Read requirements.txt
def get_requirements():
    """Parse requirements.txt for dependencies"""
    requirements_path = Path(__file__).parent / "requirements.txt"
    requirements = []

    if requirements_path.exists():
        with open(requirements_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                # Skip comments and empty lines
                if line and not line.startswith("#"):
                    # Handle inline comments
                    if "#" in line:
                        line = line.split("#")[0].strip()
                    if not line.startswith("-"):
                        requirements.append(line)

    return requirements

# Test dependencies
def get_test_requirements():
    """Get test dependencies"""
    return [
        "pytest>=8.3.2",
        "pytest-cov>=5.0.0",
        "pytest-mock>=3.14.0",
    ]

# Optional dependencies
extras_require = {
    "test": get_test_requirements(),
    "dev": get_test_requirements() + [
        "black>=24.8.0",
        "isort>=5.13.2",
        "flake8>=7.1.1",
        "mypy>=1.11.2",
    ],
}

# Package configuration
setup(
    name="forestfit",
    version=VERSION,
    description="Bagging and gradient boosting ensembles of regression trees with QoF diagnostics",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",

    # Package discovery
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    # Include configuration files
    include_package_data=True,
    package_data={
        "forestfit": ["config/*.yaml"],
    },

    # Python version requirement
    python_requires=">=3.10",

    # Dependencies
    install_requires=get_requirements(),
    extras_require=extras_require,

    # Classification metadata
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],

    # Keywords for PyPI search
    keywords=[
        "regression-tree", "bagging", "boosting", "random-forest",
        "ensemble", "machine-learning", "quality-of-fit"
    ],

    # Licensing
    license="MIT",

    # Zip safe
    zip_safe=False,
)
