"""
setup.py for the shootingmpc Python package.

shootingmpc is pure Python; the heavy lifting (automatic differentiation
and the NLP/QP solvers) is done by CasADi, which ships IPOPT, qpOASES and
HPIPM in its binary wheels.

Install for development:
    pip install -e ".[dev]"
"""

from setuptools import find_packages, setup

setup(
    name="shootingmpc",
    version="0.1.0",
    description="Multiple-shooting nonlinear MPC transcription on CasADi",
    package_dir={"": "python"},
    packages=find_packages(where="python", include=["shootingmpc", "shootingmpc.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "casadi>=3.6",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "hypothesis>=6.0",
            "black>=23.0",
            "ruff>=0.1.0",
            "mypy>=1.0",
        ],
    },
)
