from setuptools import setup, find_packages

setup(
    name="dem2profile",
    version="0.1.0",
    description="A Python package for extracting river long profiles (elevation, along-channel distance and drainage area) from DEM-derived stream networks",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "pandas",
        "geopandas",
        "shapely>=2.0",
        "rasterio",
        "dask",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "dem2profile=dem2profile.pipeline:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
)
