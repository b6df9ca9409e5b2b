import os
import time
from typing import List

import numpy as np
from tqdm import tqdm

from regmetrics import HistogramConfig, ImageMutualInformation
from regmetrics.utils import prescale_to_bytes

result_path = os.environ.get("REGMETRICS_BENCHMARK_CSV", "benchmark_results.csv")

shapes = [(32, 128, 128), (64, 256, 256)]
strategies: List[str] = ["threads", "tasks"]
worker_counts = sorted({1, 2, 4, os.cpu_count() or 1})
repeats = 3

np.random.seed(1234)

if os.path.exists(result_path):
    write_mode = "a"
else:
    write_mode = "w"

with open(result_path, write_mode) as f:
    if write_mode == "w":
        f.write("shape,input,strategy,workers,mi,nmi,time\n")
    for shape in shapes:
        print("Image shape: ", shape)
        fixed = np.random.normal(1000.0, 200.0, size=shape).astype(np.float32)
        moving = (fixed + np.random.normal(0.0, 50.0, size=shape)).astype(np.float32)
        fixed_bytes, fixed_params = prescale_to_bytes(fixed, nbins=64)
        moving_bytes, moving_params = prescale_to_bytes(moving, nbins=64)

        inputs = {
            "float32": (
                fixed,
                moving,
                dict(
                    bin_origin=(fixed_params["origin"], moving_params["origin"]),
                    bin_spacing=(fixed_params["spacing"], moving_params["spacing"]),
                ),
            ),
            "uint8": (fixed_bytes, moving_bytes, {}),
        }

        for input_name, (image_a, image_b, geometry) in inputs.items():
            for strategy in strategies:
                for workers in tqdm(worker_counts, desc=f"{input_name}/{strategy}"):
                    config = HistogramConfig(
                        number_of_bins=(64, 64), number_of_workers=workers, execution_strategy=strategy, **geometry
                    )
                    engine = ImageMutualInformation(config)
                    for _ in range(repeats):
                        start = time.time()
                        result = engine.compute(image_a, image_b)
                        f.write(
                            f"{'x'.join(map(str, shape))},{input_name},{strategy},{workers},"
                            f"{result.mutual_information},{result.normalized_mutual_information},"
                            f"{time.time() - start}\n"
                        )
