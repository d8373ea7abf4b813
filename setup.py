#!/usr/bin/env python3
"""
Setup script for FlexiPOS
"""

from pathlib import Path

from setuptools import find_packages, setup

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding='utf-8')

# Read version from flexipos/__init__.py
version = "1.0.0"
init_file = Path(__file__).parent / "flexipos" / "__init__.py"
if init_file.exists():
    for line in init_file.read_text(encoding='utf-8').split('\n'):
        if line.startswith('__version__'):
            version = line.split('=')[1].strip().strip('"').strip("'")
            break

BASE_REQUIREMENTS = [
    "numpy>=1.22.0",
    "scipy>=1.8.0",
    "scikit-learn>=1.0.0",
    "tabulate>=0.9.0",
]

EXTRAS = {
    "test": ["pytest>=7.0.0"],
}
EXTRAS["dev"] = sorted(
    set(
        EXTRAS["test"]
        + [
            "black>=22.0.0",
            "flake8>=4.0.0",
        ]
    )
)

setup(
    name="flexipos",
    version=version,
    description="Part-of-speech tagger training with domain-specific and generalised models and dynamic model selection",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=BASE_REQUIREMENTS,
    extras_require=EXTRAS,
    entry_points={
        "console_scripts": [
            "flexipos=flexipos.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Text Processing :: Linguistic",
    ],
    keywords="nlp, pos tagging, domain adaptation, liblinear, model selection",
    zip_safe=False,
)
