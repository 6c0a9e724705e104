from sklearn.ensemble import RandomForestRegressor
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import GridSearchCV, KFold, train_test_split
import sklearn
import numpy as np
import pandas as pd
import hashlib
import json
import os
import joblib

from .config import (
    CV_FOLDS,
    ID_COLUMN,
    ION_COLUMN,
    MODEL_PATH,
    N_ESTIMATORS,
    PREDICTORS,
    RANDOM_SEED,
    SAMPLE_SIZE,
    TARGET,
    TEST_SIZE,
)
from .features import filter_outlier_rows, prepare_data_for_modeling


def split_data(X, y, test_size=TEST_SIZE, random_state=RANDOM_SEED):
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=test_size, random_state=random_state
    )
    return X_train, X_test, y_train, y_test


def default_param_grid(n_predictors):
    """Candidate `max_features` values: half, all-but-one and all of the predictors."""
    candidates = {max(1, n_predictors // 2), max(1, n_predictors - 1), n_predictors}
    return {"max_features": sorted(candidates)}


def tune_random_forest(X_train, y_train, param_grid=None, n_estimators=N_ESTIMATORS,
                       cv=CV_FOLDS, random_state=RANDOM_SEED):
    """
    Grid-search a random forest with k-fold cross-validation.

    The search is refit on the whole training split with the best parameters.
    Folds are not shuffled, so the search is fully determined by the input order
    and `random_state`.

    Returns:
        GridSearchCV: The fitted search object.
    """
    if param_grid is None:
        param_grid = default_param_grid(X_train.shape[1])
    rf = RandomForestRegressor(n_estimators=n_estimators, random_state=random_state)
    search = GridSearchCV(
        rf,
        param_grid=param_grid,
        cv=KFold(n_splits=cv),
        scoring="neg_root_mean_squared_error",
        refit=True,
    )
    search.fit(X_train, y_train)
    print(f"Best parameters: {search.best_params_} (CV RMSE = {-search.best_score_:.3f})")
    return search


def train_random_forest(X_train, y_train, param_grid=None, n_estimators=N_ESTIMATORS,
                        cv=CV_FOLDS, random_state=RANDOM_SEED):
    """Trains a random forest with hyperparameters picked by k-fold cross-validation."""
    search = tune_random_forest(X_train, y_train, param_grid=param_grid, n_estimators=n_estimators,
                                cv=cv, random_state=random_state)
    return search.best_estimator_


def cv_results_table(search):
    """Mean and spread of the cross-validated RMSE for every candidate."""
    cvres = pd.DataFrame(search.cv_results_)
    table = pd.DataFrame({
        "params": cvres["params"].astype(str),
        "rmse": -cvres["mean_test_score"],
        "rmse_std": cvres["std_test_score"],
        "rank": cvres["rank_test_score"],
    })
    return table.sort_values("rank").reset_index(drop=True)


def training_fingerprint(X_train, y_train, predictors, target, random_state):
    """MD5 digest identifying the data and settings a model was trained with."""
    h = hashlib.md5()
    h.update(pd.util.hash_pandas_object(X_train, index=True).values.tobytes())
    h.update(pd.util.hash_pandas_object(y_train, index=True).values.tobytes())
    settings = {
        "predictors": list(predictors),
        "target": target,
        "random_state": random_state,
        "sklearn": sklearn.__version__,
    }
    h.update(json.dumps(settings, sort_keys=True).encode())
    return h.hexdigest()


def save_model(bundle, path=MODEL_PATH):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    joblib.dump(bundle, path)
    print(f"Model saved to {path}")


def load_model(path=MODEL_PATH):
    """
    Load a cached model bundle.

    Files holding a bare estimator are wrapped into a bundle without a fingerprint.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Model file not found at: {path}")
    obj = joblib.load(path)
    if isinstance(obj, dict) and "model" in obj:
        return obj
    predictors = [str(col) for col in getattr(obj, "feature_names_in_", PREDICTORS)]
    return {"model": obj, "predictors": predictors, "target": TARGET, "fingerprint": None}


def prepare_training_data(df, predictors=PREDICTORS, target=TARGET, random_state=RANDOM_SEED):
    """Row-level outlier filter, predictor selection and the 80/20 split."""
    df_filtered = filter_outlier_rows(df)
    X, y = prepare_data_for_modeling(df_filtered, predictors=predictors, target=target)
    return split_data(X, y, random_state=random_state)


def load_or_train_model(df, model_path=MODEL_PATH, predictors=PREDICTORS, target=TARGET,
                        param_grid=None, n_estimators=N_ESTIMATORS, cv=CV_FOLDS,
                        random_state=RANDOM_SEED, retrain_if_stale=False):
    """
    Return the cached random forest if one exists, otherwise train and cache it.

    An existing model file is reused as-is. Its stored fingerprint is compared
    with the current training data and settings; a mismatch only prints a
    warning unless `retrain_if_stale` is set. The returned splits use the
    predictor columns of the model actually returned.

    Returns:
        dict: 'model', 'predictors', 'target', 'fingerprint', 'from_cache', 'stale',
        plus the 'X_train', 'X_test', 'y_train' and 'y_test' splits.
    """
    X_train, X_test, y_train, y_test = prepare_training_data(
        df, predictors=predictors, target=target, random_state=random_state
    )
    fingerprint = training_fingerprint(X_train, y_train, predictors, target, random_state)

    bundle = None
    stale = False
    if os.path.exists(model_path):
        print(f"Loading cached model from {model_path}...")
        bundle = load_model(model_path)
        stale = bundle.get("fingerprint") != fingerprint
        if stale:
            print("Warning: cached model does not match the current data or settings.")
            if retrain_if_stale:
                print("Retraining stale model...")
                bundle = None

    from_cache = bundle is not None
    if bundle is None:
        print("Training model...")
        search = tune_random_forest(X_train, y_train, param_grid=param_grid, n_estimators=n_estimators,
                                    cv=cv, random_state=random_state)
        bundle = {
            "model": search.best_estimator_,
            "predictors": list(predictors),
            "target": target,
            "fingerprint": fingerprint,
            "best_params": search.best_params_,
            "cv_results": cv_results_table(search),
        }
        save_model(bundle, model_path)
        stale = False
    elif list(bundle["predictors"]) != list(predictors) or bundle.get("target", target) != target:
        # Cached model was fit on other columns; split on those instead
        cached_predictors = list(bundle["predictors"])
        cached_target = bundle.get("target", target)
        missing = [col for col in cached_predictors + [cached_target] if col not in df.columns]
        if missing:
            raise ValueError(f"Cached model at {model_path} needs columns missing from the data: {missing}")
        print(f"Cached model uses predictors {cached_predictors}; splitting the data on those.")
        X_train, X_test, y_train, y_test = prepare_training_data(
            df, predictors=cached_predictors, target=cached_target, random_state=random_state
        )

    result = dict(bundle)
    result.update({
        "from_cache": from_cache,
        "stale": stale,
        "X_train": X_train,
        "X_test": X_test,
        "y_train": y_train,
        "y_test": y_test,
    })
    return result


def predict(model, df, predictors=PREDICTORS):
    """
    One predicted target value per row of `df`.

    Only the predictor columns are used, in training order. Values are scored
    as given, including ones outside the training distribution.
    """
    X = df[list(predictors)].astype(np.float64)
    return model.predict(X)


def evaluate_model(model, X_test, y_test):
    y_pred = model.predict(X_test)
    return {
        "mae": mean_absolute_error(y_test, y_pred),
        "rmse": np.sqrt(mean_squared_error(y_test, y_pred)),
        "r2": r2_score(y_test, y_pred),
        "predictions": y_pred,
    }


def feature_importances(model, predictors=PREDICTORS):
    return (
        pd.DataFrame({"Predictor": list(predictors), "Importance": model.feature_importances_})
        .sort_values("Importance", ascending=False)
        .reset_index(drop=True)
    )


def make_sensitivity_grid(X_train, predictor, n_points=50, value_range=None):
    """
    Synthetic rows ramping one predictor while the others stay at their training means.

    Args:
        X_train (pd.DataFrame): Training predictors.
        predictor (str): The predictor to ramp.
        n_points (int): Number of rows.
        value_range (tuple, optional): (start, stop) of the ramp. Defaults to the
            training minimum and maximum of `predictor`.

    Returns:
        pd.DataFrame: `n_points` rows with the same columns as `X_train`.
    """
    if value_range is None:
        value_range = (X_train[predictor].min(), X_train[predictor].max())
    means = X_train.mean()
    grid = pd.DataFrame({col: np.full(n_points, means[col]) for col in X_train.columns})
    grid[predictor] = np.linspace(value_range[0], value_range[1], n_points)
    return grid


def sensitivity_analysis(model, X_train, predictors=None, n_points=50):
    """
    Marginal response of the model to each predictor.

    Returns:
        pd.DataFrame: Long table with columns ['Predictor', 'Value', 'Predicted'].
    """
    if predictors is None:
        predictors = list(X_train.columns)
    frames = []
    for predictor in predictors:
        grid = make_sensitivity_grid(X_train, predictor, n_points=n_points)
        frames.append(pd.DataFrame({
            "Predictor": predictor,
            "Value": grid[predictor].to_numpy(),
            "Predicted": predict(model, grid, predictors=X_train.columns),
        }))
    return pd.concat(frames, ignore_index=True)


def sample_predictions(model, df, predictors=PREDICTORS, target=TARGET, n=SAMPLE_SIZE,
                       random_state=RANDOM_SEED):
    """
    Predicted vs. actual target for a random sample of real records.

    Returns:
        pd.DataFrame: Columns [ID_COLUMN, ION_COLUMN, 'Actual', 'Predicted', 'Residual'].
    """
    complete = df.dropna(subset=list(predictors) + [target])
    sample = complete.sample(n=min(n, len(complete)), random_state=random_state)
    predicted = predict(model, sample, predictors=predictors)
    out = pd.DataFrame({
        ID_COLUMN: sample[ID_COLUMN].to_numpy() if ID_COLUMN in sample.columns else sample.index.to_numpy(),
        ION_COLUMN: sample[ION_COLUMN].to_numpy() if ION_COLUMN in sample.columns else None,
        "Actual": sample[target].to_numpy(),
        "Predicted": predicted,
    })
    out["Residual"] = out["Actual"] - out["Predicted"]
    return out
