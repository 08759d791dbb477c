from setuptools import setup, find_packages

setup(
    name='dgview',
    version='0.1.0',
    description='Color protein structures by per-residue ΔG_op values carried in the B-factor column.',
    long_description='Color protein structures by per-residue ΔG_op values carried in the B-factor column.',
    long_description_content_type='text/markdown',
    packages=find_packages(include=['dgview', 'dgview.*']),
    license='MIT',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'ipython',
        'gemmi',
        'ipywidgets>=8',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
