import argparse

import pandas as pd
import matplotlib.pyplot as plt

# Columns written by abr_simulate.py -o
columns = {
    'bitrate_kbps': 'Bitrate (kbps)',
    'estimate_kbps': 'Estimated bandwidth (kbps)',
    'buffer_level': 'Buffer level (s)',
    'rebuffer_time': 'Rebuffer time (s)',
}


def load_results(paths):
    dataframes = {}
    for path in paths:
        df = pd.read_csv(path)
        missing = [c for c in ['time', *columns] if c not in df.columns]
        if missing:
            raise ValueError(f'{path}: missing columns {", ".join(missing)}')
        dataframes[path] = df.apply(pd.to_numeric, errors='coerce')
    return dataframes


def generate_graphs(dataframes, output=None):
    fig, axes = plt.subplots(len(columns), 1, figsize=(10, 3 * len(columns)), sharex=True)
    for ax, (column, label) in zip(axes, columns.items()):
        for name, df in dataframes.items():
            drawstyle = 'steps-post' if column == 'bitrate_kbps' else 'default'
            ax.plot(df['time'], df[column], label=name, marker='o', markersize=3,
                    alpha=0.8, drawstyle=drawstyle)
        ax.set_ylabel(label)
        ax.grid(visible=True, which='both', linestyle='--', alpha=0.5)
    axes[0].legend()
    axes[-1].set_xlabel('Time (s)')
    fig.tight_layout()

    if output:
        fig.savefig(output)
    else:
        plt.show()
    return fig


def main(argv=None):
    parser = argparse.ArgumentParser(description='Plot abr_simulate.py CSV results.')
    parser.add_argument('results', nargs='+', help='CSV files written by abr_simulate.py -o')
    parser.add_argument('-o', '--output', default=None, help='Save the figure instead of showing it')
    args = parser.parse_args(argv)

    generate_graphs(load_results(args.results), args.output)


if __name__ == '__main__':
    main()
