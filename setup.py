from setuptools import find_packages, setup

setup(
    name="splitforest",
    version="0.1.0",
    description="Entropy-driven decision tree induction with batch and online learners",
    packages=find_packages(include=["splitforest", "splitforest.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "torch",
    ],
    extras_require={
        "test": ["pytest", "pandas"],
        "benchmark": ["scikit-learn"],
    },
)
