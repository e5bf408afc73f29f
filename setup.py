# torchnfsft setuptools configuration
from setuptools import find_packages, setup

setup(
    name="torchnfsft",
    version="0.1.0",
    description="Spherical Fourier transforms at nonequispaced nodes for PyTorch",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "torch>=2.0",
        "numpy>=1.24",
        "scipy>=1.10",
        "finufft>=2.2",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
