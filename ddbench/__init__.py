"""ddbench - measure filesystem read/write rates with dd.

Modules:
    single_file: write and read back one file N times (ddbench-sfm)
    multi_file: write many files, then time reading all of them (ddbench-mfm)
    plot: render a result data file to PNG (ddbench-plot)
    units: size parsing, block rounding and rate normalization
    dd: running dd and parsing its summary line
    report: result rows, data files and the run transcript
    system: free memory, page cache and test file helpers
"""

__version__ = "0.1.0"
