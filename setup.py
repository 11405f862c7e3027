
from setuptools import setup, find_packages

setup(
    name='rangesdm',
    version='0.1.0',
    description='Habitat suitability modelling and species range-overlap comparison',
    author='Matthew Whittle',
    author_email='matthewjwhittle@gmail.com',
    packages=find_packages(include=['rangesdm', 'rangesdm.*']),
    package_data={'rangesdm': ['configs/*.yaml']},
    python_requires='>=3.11',
    install_requires=[
        'numpy',
        'pandas',
        'geopandas>=1.0',
        'shapely>=2.0',
        'xarray',
        'rioxarray',
        'rasterio',
        'affine<3',
        'scipy',
        'scikit-learn',
        'statsmodels',
        'joblib',
        'pydantic>=2',
        'typer',
        'typing_extensions',
        'pyyaml',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'rangesdm=rangesdm.cli:app',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
)
