# prediction.py
import io
import os
from collections import OrderedDict
from typing import Dict

from PIL import Image

import torch
import torch.nn as nn
from torchvision import models, transforms

from config import GRADES, IMG_SIZE, MODEL_PATH

# ----------------------------
# Config
# ----------------------------
DEVICE = torch.device("cuda" if torch.cuda.is_available() else "cpu")

# Class index -> fibrosis stage
CLASS_MAPPING = dict(enumerate(GRADES))


# ----------------------------
# Model loading
# ----------------------------
def load_model(model_path: str = MODEL_PATH) -> nn.Module:
    model = models.resnet18(weights=None)
    model.fc = nn.Linear(model.fc.in_features, len(CLASS_MAPPING))
    if not os.path.exists(model_path):
        raise FileNotFoundError(f"Model file not found at {model_path}")
    state = torch.load(model_path, map_location=DEVICE)
    # handle DataParallel saved state
    if isinstance(state, dict) and any(k.startswith("module.") for k in state.keys()):
        state = OrderedDict((k.replace("module.", "", 1), v) for k, v in state.items())
    model.load_state_dict(state)
    model.to(DEVICE)
    model.eval()
    return model


# ----------------------------
# Preprocessing
# ----------------------------
preprocess = transforms.Compose([
    transforms.Resize(IMG_SIZE),
    transforms.ToTensor(),
    transforms.Normalize(mean=[0.485, 0.456, 0.406],
                         std=[0.229, 0.224, 0.225])
])


# ----------------------------
# Inference
# ----------------------------
def predict_fibrosis(model: nn.Module, image_bytes: bytes) -> Dict:
    """Returns { grade: 'F0'..'F4', confidence: 0..100 }."""
    pil_img = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    img_tensor = preprocess(pil_img).unsqueeze(0).to(DEVICE)  # (1,C,H,W)
    with torch.no_grad():
        outputs = model(img_tensor)
        probs = torch.softmax(outputs, dim=1)[0]
        pred_idx = int(torch.argmax(probs).item())
        confidence = float(probs[pred_idx].cpu().item()) * 100.0

    return {
        "grade": CLASS_MAPPING[pred_idx],
        "confidence": confidence,
    }
