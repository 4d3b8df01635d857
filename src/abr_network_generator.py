import numpy as np
import json
import argparse

# Periods use the network.json units read by abr_simulate.py: ms and kbit/s.
def generate_network_conditions(num_entries, duration, bandwidth_mean, bandwidth_std,
                                latency_mean, latency_std, seed=None):
    rng = np.random.default_rng(seed)
    bandwidths = np.clip(rng.normal(bandwidth_mean, bandwidth_std, num_entries), 0, None)
    latencies = np.clip(rng.normal(latency_mean, latency_std, num_entries), 0, None)

    network_conditions = []
    for bandwidth, latency in zip(bandwidths, latencies):
        network_conditions.append({
            "duration_ms": int(duration),
            "bandwidth_kbps": int(bandwidth),
            "latency_ms": int(latency)
        })

    return network_conditions

def main(argv=None):
    parser = argparse.ArgumentParser(description='Generate a network trace for abr_simulate.py')
    parser.add_argument('-ne', '--num_entries', type=int, required=True, help='Number of periods to generate')
    parser.add_argument('-d', '--duration', type=float, required=True, help='Duration of each period in ms')
    parser.add_argument('-bm', '--bandwidth_mean', type=float, required=True, help='Mean bandwidth in kbps')
    parser.add_argument('-bs', '--bandwidth_std', type=float, required=True, help='Standard deviation of bandwidth in kbps')
    parser.add_argument('-lm', '--latency_mean', type=float, default=50, help='Mean latency in ms')
    parser.add_argument('-ls', '--latency_std', type=float, default=10, help='Standard deviation of latency in ms')
    parser.add_argument('-s', '--seed', type=int, default=None, help='Random seed for a reproducible trace')
    parser.add_argument('-o', '--output', default='network.json', help='Output file')

    args = parser.parse_args(argv)

    network_conditions = generate_network_conditions(
        args.num_entries,
        args.duration,
        args.bandwidth_mean,
        args.bandwidth_std,
        args.latency_mean,
        args.latency_std,
        args.seed,
    )

    with open(args.output, 'w') as f:
        json.dump(network_conditions, f, indent=4)

    print(f"{args.output} file has been generated.")

if __name__ == '__main__':
    main()
