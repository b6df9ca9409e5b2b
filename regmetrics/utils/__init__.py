from regmetrics.utils.prescale import auto_bin_geometry, bins_to_intensity, intensity_range, prescale_to_bytes
